from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Literal, Optional, Union

from annostudio.api import field_selection, merged_rows
from annostudio.api.base import ApiClient
from annostudio.exceptions import ApiError
from annostudio.models import AnnotationField, CompletionStatus, CSVInfo, DatasetMergedRows, NewColumn, RowStatus

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
RADIO_MAX_OPTIONS = 5
MULTISELECT_SEP = ", "
_NUMBER_INPUT = re.compile(r"^-?[\d.]*$")

TaskStatus = Literal["pending", "completed"]
InputKind = Literal["textarea", "number", "radio", "select", "multiselect"]


@dataclass(frozen=True)
class Task:
    row_index: int
    status: TaskStatus = "pending"
    metadata: dict[str, Any] = field(default_factory=dict)
    csv_info: Optional[CSVInfo] = None

    @property
    def id(self) -> str:
        return f"row-{self.row_index}"

    @property
    def title(self) -> str:
        return f"Row {self.row_index}"

    @property
    def completed(self) -> bool:
        return self.status == "completed"


def build_tasks(data: DatasetMergedRows) -> list[Task]:
    """One task per merged row; without row payloads, 1-based placeholders from totalRows."""
    if data.merged_rows is not None:
        return [
            Task(
                row_index=r.row_index,
                status="completed" if r.completed else "pending",
                metadata=dict(r.data or {}),
                csv_info=r.csv_info,
            )
            for r in data.merged_rows
        ]
    return [Task(row_index=i + 1) for i in range(max(0, int(data.total_rows or 0)))]


def apply_row_statuses(tasks: list[Task], statuses: Iterable[RowStatus]) -> list[Task]:
    done = {s.row_index: s.completed for s in statuses}
    return [replace(t, status="completed" if done.get(t.row_index) else "pending") for t in tasks]


def resume_index(tasks: list[Task], last_viewed_row: int) -> int:
    """Last viewed position when in range, else the first incomplete task, else 0."""
    if 0 < last_viewed_row < len(tasks):
        return int(last_viewed_row)
    for i, t in enumerate(tasks):
        if not t.completed:
            return i
    return 0


def completed_count(tasks: Iterable[Task]) -> int:
    return sum(1 for t in tasks if t.completed)


def mark_task(tasks: list[Task], index: int, *, status: TaskStatus, data: Optional[dict[str, Any]] = None) -> list[Task]:
    out = list(tasks)
    t = out[index]
    out[index] = replace(t, status=status, metadata={**t.metadata, **(data or {})})
    return out


# ── Fields ─────────────────────────────────────────────────


def normalize_fields(raw: Iterable[Union[AnnotationField, dict[str, Any]]]) -> list[AnnotationField]:
    """Backend fields with defaults filled: annotation unless explicitly false, flags coerced to bool."""
    out: list[AnnotationField] = []
    for f in raw:
        d = f.model_dump(by_alias=True) if isinstance(f, AnnotationField) else dict(f)
        d["isAnnotationField"] = d.get("isAnnotationField") is not False
        for key in ("isNewColumn", "isPrimaryKey", "isRequired"):
            d[key] = bool(d.get(key))
        out.append(AnnotationField.model_validate(d))
    return out


def split_fields(fields: list[AnnotationField]) -> tuple[list[AnnotationField], list[AnnotationField]]:
    """(metadata fields, annotation fields)."""
    meta = [f for f in fields if not f.is_annotation_field and not f.is_new_column]
    anno = [f for f in fields if f.is_new_column or f.is_annotation_field]
    return meta, anno


def task_media_kind(fields: list[AnnotationField]) -> str:
    types = {f.field_type for f in fields if f.is_annotation_field}
    if "image" in types:
        return "image"
    if "audio" in types:
        return "audio"
    return "text"


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def initial_values(
    annotation_fields: list[AnnotationField], row_data: dict[str, Any], previous: Optional[dict[str, str]] = None
) -> dict[str, str]:
    """Form values for a row: saved row data first, then unsaved edits, else empty."""
    previous = previous or {}
    out: dict[str, str] = {}
    for f in annotation_fields:
        saved = row_data.get(f.field_name)
        if not _blank(saved):
            out[f.field_name] = str(saved)
        else:
            out[f.field_name] = str(previous.get(f.field_name) or "")
    return out


def collect_row_values(annotation_fields: list[AnnotationField], values: dict[str, Any]) -> dict[str, str]:
    """Only non-blank values are sent to the backend."""
    out: dict[str, str] = {}
    for f in annotation_fields:
        v = values.get(f.field_name)
        if not _blank(v):
            out[f.field_name] = str(v)
    return out


def missing_required(annotation_fields: list[AnnotationField], values: dict[str, Any]) -> list[str]:
    return [f.label for f in annotation_fields if f.is_required and _blank(values.get(f.field_name))]


# ── Undo / redo ────────────────────────────────────────────


class EditHistory:
    """Bounded undo/redo stack of form states (last 20 kept)."""

    def __init__(self, limit: int = HISTORY_LIMIT):
        self.limit = int(limit)
        self.states: list[dict[str, Any]] = []
        self.index = -1

    def push(self, state: dict[str, Any]) -> None:
        self.states = self.states[: self.index + 1]
        self.states.append(dict(state))
        self.states = self.states[-self.limit :]
        self.index = len(self.states) - 1

    @property
    def can_undo(self) -> bool:
        return self.index > 0

    @property
    def can_redo(self) -> bool:
        return self.index < len(self.states) - 1

    def undo(self) -> Optional[dict[str, Any]]:
        if not self.can_undo:
            return None
        self.index -= 1
        return dict(self.states[self.index])

    def redo(self) -> Optional[dict[str, Any]]:
        if not self.can_redo:
            return None
        self.index += 1
        return dict(self.states[self.index])

    def clear(self) -> None:
        self.states = []
        self.index = -1


# ── New-column inputs ──────────────────────────────────────


def selectrange_options(column: NewColumn) -> list[str]:
    lo = int(column.validation.min or 0)
    hi = int(column.validation.max or 10)
    return [str(i) for i in range(lo, hi + 1)]


def input_kind(column: NewColumn) -> InputKind:
    if column.column_type == "number":
        return "number"
    if column.column_type == "multiselect" and column.options:
        return "multiselect"
    if column.column_type == "select" and column.options:
        return "radio" if len(column.options) <= RADIO_MAX_OPTIONS else "select"
    if column.column_type == "selectrange":
        return "radio" if len(selectrange_options(column)) <= RADIO_MAX_OPTIONS else "select"
    return "textarea"


def choice_options(column: NewColumn) -> list[str]:
    if column.column_type == "selectrange":
        return selectrange_options(column)
    return list(column.options)


def parse_multiselect(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def join_multiselect(values: Iterable[str]) -> str:
    return MULTISELECT_SEP.join(v for v in values if v)


def is_number_input(text: str) -> bool:
    return bool(_NUMBER_INPUT.match(text or ""))


def new_column_for(field_: AnnotationField, columns: list[NewColumn]) -> Optional[NewColumn]:
    if not field_.new_column_id:
        return None
    return next((c for c in columns if c.id == field_.new_column_id), None)


# ── Backend flow ───────────────────────────────────────────


@dataclass(frozen=True)
class CompletionOutcome:
    tasks: list[Task]
    saved: dict[str, str]
    updated_fields: int
    all_completed: bool
    next_index: int
    status: Optional[CompletionStatus] = None

    @property
    def message(self) -> str:
        if self.all_completed:
            return "All rows are complete."
        suffix = "" if self.next_index == -1 else " Moving to next row..."
        if self.saved:
            if self.updated_fields > 0:
                return f"Successfully saved {self.updated_fields} field(s).{suffix}"
            return f"Row marked as complete.{suffix}"
        return f"Row completed.{suffix}"


def save_and_complete(
    client: ApiClient,
    dataset_id: str,
    tasks: list[Task],
    index: int,
    annotation_fields: list[AnnotationField],
    values: dict[str, Any],
) -> CompletionOutcome:
    """
    Persist the row's non-blank values, mark it completed and report overall completion.

    A failing data save raises; completion/progress bookkeeping failures are only logged.
    """
    task = tasks[index]
    data = collect_row_values(annotation_fields, values)
    updated = 0
    if data:
        resp = merged_rows.patch_row_data(client, dataset_id, task.row_index, data)
        updated = int(resp.updated_fields or 0)

    tasks = mark_task(tasks, index, status="completed", data=data)

    try:
        merged_rows.mark_completed(client, dataset_id, task.row_index)
        field_selection.update_progress(client, dataset_id, task.row_index, completed_count(tasks))
    except ApiError as e:
        logger.warning("Completion bookkeeping failed for row %s: %s", task.row_index, e)

    status: Optional[CompletionStatus] = None
    try:
        status = merged_rows.completion_status(client, dataset_id)
    except ApiError as e:
        logger.warning("Completion status unavailable for %s: %s", dataset_id, e)

    all_done = bool(status and status.all_completed)
    is_last = index >= len(tasks) - 1
    next_index = index if all_done else (-1 if is_last else index + 1)
    return CompletionOutcome(
        tasks=tasks, saved=data, updated_fields=updated, all_completed=all_done, next_index=next_index, status=status
    )


def record_navigation(client: ApiClient, dataset_id: str, new_index: int, tasks: list[Task]) -> None:
    """Store the last viewed position; failures are logged, never raised."""
    try:
        field_selection.update_progress(client, dataset_id, new_index, completed_count(tasks))
    except ApiError as e:
        logger.warning("Could not update last viewed row for %s: %s", dataset_id, e)
