from __future__ import annotations

import logging
from typing import Any, Optional

from annostudio.api.base import ApiClient
from annostudio.models import FieldConfig

logger = logging.getLogger(__name__)


def get_config(client: ApiClient, dataset_id: str) -> Optional[FieldConfig]:
    body = client.get(f"/field-selection/dataset/{dataset_id}", allow_404=True)
    if not body:
        return None
    return FieldConfig.model_validate(body)


def check_config(client: ApiClient, dataset_id: str) -> bool:
    body = client.get(f"/field-selection/dataset/{dataset_id}/check", allow_404=True) or {}
    return bool(body.get("hasConfig"))


def save_config(client: ApiClient, dataset_id: str, payload: dict[str, Any]) -> Optional[FieldConfig]:
    body = client.post(f"/field-selection/dataset/{dataset_id}", json=payload)
    logger.info(
        "Saved field config for %s: %d fields, %d labels, %d new columns",
        dataset_id,
        len(payload.get("annotationFields", [])),
        len(payload.get("annotationLabels", [])),
        len(payload.get("newColumns", [])),
    )
    return FieldConfig.model_validate(body) if isinstance(body, dict) else None


def get_progress(client: ApiClient, dataset_id: str) -> dict[str, Any]:
    return client.get(f"/field-selection/dataset/{dataset_id}/progress") or {}


def update_progress(client: ApiClient, dataset_id: str, last_viewed_row: int, completed_rows: int) -> None:
    client.patch(
        f"/field-selection/dataset/{dataset_id}/progress",
        json={"lastViewedRow": int(last_viewed_row), "completedRows": int(completed_rows)},
    )
