from __future__ import annotations

from annostudio.api.base import ApiClient
from annostudio.models import User


def get_profile(client: ApiClient) -> User:
    return User.model_validate(client.get("/users/profile") or {})


def update_profile(client: ApiClient, payload: dict) -> User:
    return User.model_validate(client.put("/users/profile", json=payload) or {})


def change_password(client: ApiClient, payload: dict) -> None:
    client.put("/users/password", json=payload)


def list_users(client: ApiClient) -> list[User]:
    """All registered users (admin only)."""
    return [User.model_validate(u) for u in (client.get("/auth/users") or [])]
