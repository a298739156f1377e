from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from annostudio.api.base import ApiClient
from annostudio.models import User


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    user: User


def _login_result(body: Any) -> LoginResult:
    body = body or {}
    token = body.get("accessToken") or body.get("access_token") or ""
    return LoginResult(access_token=str(token), user=User.model_validate(body.get("user") or {}))


def login(client: ApiClient, email: str, password: str) -> LoginResult:
    return _login_result(client.post("/auth/login", json={"email": email, "password": password}))
