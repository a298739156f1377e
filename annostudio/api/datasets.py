from __future__ import annotations

import logging
from typing import Any, Optional

from annostudio.api.base import ApiClient
from annostudio.models import Dataset

logger = logging.getLogger(__name__)


def _datasets(body: Any) -> list[Dataset]:
    return [Dataset.model_validate(d) for d in (body or [])]


def list_datasets(client: ApiClient) -> list[Dataset]:
    return _datasets(client.get("/datasets"))


def search_datasets(client: ApiClient, query: str) -> list[Dataset]:
    return _datasets(client.get("/datasets/search", params={"q": query}))


def get_dataset(client: ApiClient, dataset_id: str) -> Dataset:
    return Dataset.model_validate(client.get(f"/datasets/{dataset_id}"))


def create_dataset(client: ApiClient, payload: dict) -> Dataset:
    ds = Dataset.model_validate(client.post("/datasets", json=payload))
    logger.info("Created dataset %s (%s)", ds.id, ds.name)
    return ds


def update_dataset(client: ApiClient, dataset_id: str, payload: dict) -> Dataset:
    return Dataset.model_validate(client.patch(f"/datasets/{dataset_id}", json=payload))


def delete_dataset(client: ApiClient, dataset_id: str) -> None:
    client.delete(f"/datasets/{dataset_id}")
    logger.info("Deleted dataset %s", dataset_id)


def build_update_payload(
    *,
    name: str,
    description: str,
    dataset_type: Optional[str],
    access_type: str,
    shared_with: list[dict[str, str]],
    image_auth: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """PATCH body for dataset settings; sharedWith is emptied unless access is ``shared``."""
    payload: dict[str, Any] = {"name": name.strip(), "description": description.strip(), "accessType": access_type}
    if dataset_type:
        payload["datasetType"] = dataset_type
    payload["sharedWith"] = (
        [{"userId": u["userId"], "email": u.get("email", "")} for u in shared_with] if access_type == "shared" else []
    )
    if image_auth is not None:
        payload["imageAuthConfig"] = image_auth
    return payload
