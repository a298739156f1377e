from __future__ import annotations

import logging
from typing import Any, Optional

from annostudio.api import field_selection
from annostudio.api.base import ApiClient
from annostudio.models import (
    AnnotationProgress,
    CompletionStatus,
    DatasetMergedRows,
    DetailedProgress,
    MergedRow,
    PatchRowDataResponse,
    RowStatus,
)

logger = logging.getLogger(__name__)

_BASE = "/dataset-merged-rows"


def get_dataset_data(client: ApiClient, dataset_id: str) -> DatasetMergedRows:
    return DatasetMergedRows.model_validate(client.get(f"{_BASE}/dataset/{dataset_id}/debug") or {})


def get_row(client: ApiClient, dataset_id: str, row_index: int) -> Optional[MergedRow]:
    body = client.get(f"{_BASE}/dataset/{dataset_id}/row/{int(row_index)}", allow_404=True)
    return MergedRow.model_validate(body) if body else None


def patch_row_data(client: ApiClient, dataset_id: str, row_index: int, data: dict[str, Any]) -> PatchRowDataResponse:
    body = client.patch(f"{_BASE}/dataset/{dataset_id}/row/{int(row_index)}", json={"data": data})
    return PatchRowDataResponse.model_validate(body or {})


def mark_completed(client: ApiClient, dataset_id: str, row_index: int) -> None:
    client.patch(f"{_BASE}/mark-completed", json={"datasetId": dataset_id, "rowIndex": int(row_index)})
    logger.info("Marked row %s of %s completed", row_index, dataset_id)


def annotation_progress(client: ApiClient, dataset_id: str) -> AnnotationProgress:
    return AnnotationProgress.model_validate(client.get(f"{_BASE}/dataset/{dataset_id}/progress") or {})


def completion_status(client: ApiClient, dataset_id: str) -> CompletionStatus:
    return CompletionStatus.model_validate(client.get(f"{_BASE}/dataset/{dataset_id}/completion-status") or {})


def combine_progress(progress: dict[str, Any], data: DatasetMergedRows) -> DetailedProgress:
    """Merge field-selection progress counters with per-row completion flags."""
    total = int(progress.get("totalRows") or data.total_rows or 0)
    completed = int(progress.get("completedRows") or 0)
    pending = int(progress.get("pendingRows") or data.total_rows or 0)
    progress_total = int(progress.get("totalRows") or 0)
    pct = (completed / progress_total) * 100 if progress_total > 0 else 0.0
    statuses = [
        RowStatus(row_index=r.row_index, completed=bool(r.completed), completed_at=r.completed_at)
        for r in (data.merged_rows or [])
    ]
    return DetailedProgress(
        total_rows=total,
        completed_rows=completed,
        pending_rows=pending,
        progress_percentage=pct,
        last_viewed_row=int(progress.get("lastViewedRow") or 0),
        row_statuses=statuses,
    )


def detailed_progress(
    client: ApiClient, dataset_id: str, data: Optional[DatasetMergedRows] = None
) -> DetailedProgress:
    progress = field_selection.get_progress(client, dataset_id)
    if data is None:
        data = get_dataset_data(client, dataset_id)
    return combine_progress(progress, data)
