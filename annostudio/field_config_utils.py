"""
Field-configuration rules.

Every mutator takes the current list and returns a new one; model instances are
copied with ``model_copy(update=...)`` so callers can keep the previous list for undo.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from annostudio.exceptions import FieldConfigError
from annostudio.models import AnnotationField, AnnotationLabel, ColumnValidation, NewColumn, ValidationResult

logger = logging.getLogger(__name__)

PREDEFINED_COLORS = (
    "#ef4444",
    "#f97316",
    "#eab308",
    "#22c55e",
    "#06b6d4",
    "#3b82f6",
    "#8b5cf6",
    "#ec4899",
    "#64748b",
    "#0f172a",
)

_SUGGESTED_NAMES = {
    "customer_name": "Customer Name",
    "email": "Email",
    "phone": "Phone",
    "message": "Message",
    "rating": "Rating",
    "timestamp": "Timestamp",
    "sentiment": "Sentiment",
    "category": "Category",
    "priority": "Priority",
    "status": "Status",
}

# error codes returned by move/reorder
PRIMARY_KEY_RESTRICTION = "PRIMARY_KEY_RESTRICTION"
NEW_COLUMN_RESTRICTION = "NEW_COLUMN_RESTRICTION"
FIELD_NOT_FOUND = "FIELD_NOT_FOUND"
SELF_DROP = "SELF_DROP"
INVALID_FIELD_TYPE = "INVALID_FIELD_TYPE"


@dataclass(frozen=True)
class MoveResult:
    success: bool
    message: str
    fields: list[AnnotationField]
    error: Optional[str] = None


def suggested_field_name(column: str) -> str:
    if column in _SUGGESTED_NAMES:
        return _SUGGESTED_NAMES[column]
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), column.replace("_", " "))


def fields_from_columns(columns: Iterable[str], existing: Optional[list[AnnotationField]] = None) -> list[AnnotationField]:
    """
    One field per CSV column, in column order, followed by the saved new-column fields.

    Saved settings are kept for columns that still exist; unknown columns get a visible,
    optional metadata text field with a suggested display name.
    """
    saved = {f.csv_column_name: f for f in (existing or []) if not f.is_new_column}
    out: list[AnnotationField] = []
    for col in columns:
        if col in saved:
            out.append(saved[col].model_copy())
        else:
            out.append(AnnotationField(csv_column_name=col, field_name=suggested_field_name(col)))
    out.extend(f.model_copy() for f in (existing or []) if f.is_new_column)
    return out


def _index(fields: list[AnnotationField], column: str) -> int:
    for i, f in enumerate(fields):
        if f.csv_column_name == column:
            return i
    return -1


def _require(fields: list[AnnotationField], column: str) -> int:
    i = _index(fields, column)
    if i < 0:
        raise FieldConfigError(f'Field "{column}" not found', code=FIELD_NOT_FOUND)
    return i


def update_field(fields: list[AnnotationField], column: str, **updates: Any) -> list[AnnotationField]:
    i = _require(fields, column)
    out = list(fields)
    out[i] = fields[i].model_copy(update=updates)
    return out


def set_primary_key(fields: list[AnnotationField], column: str) -> list[AnnotationField]:
    """``column`` becomes the only primary key and is forced into the metadata panel."""
    _require(fields, column)
    out: list[AnnotationField] = []
    for f in fields:
        if f.csv_column_name == column:
            out.append(f.model_copy(update={"is_primary_key": True, "is_annotation_field": False}))
        elif f.is_primary_key:
            out.append(f.model_copy(update={"is_primary_key": False}))
        else:
            out.append(f)
    return out


def clear_primary_key(fields: list[AnnotationField]) -> list[AnnotationField]:
    return [f.model_copy(update={"is_primary_key": False}) if f.is_primary_key else f for f in fields]


def primary_key(fields: list[AnnotationField]) -> Optional[AnnotationField]:
    return next((f for f in fields if f.is_primary_key), None)


def set_annotation_flag(fields: list[AnnotationField], column: str, value: bool) -> list[AnnotationField]:
    i = _require(fields, column)
    f = fields[i]
    if value and f.is_primary_key:
        raise FieldConfigError("Primary key fields cannot be annotation fields", code=PRIMARY_KEY_RESTRICTION)
    if not value and f.is_new_column:
        raise FieldConfigError("New columns cannot be moved back to metadata", code=NEW_COLUMN_RESTRICTION)
    return update_field(fields, column, is_annotation_field=bool(value))


def move_field(fields: list[AnnotationField], column: str, target_panel: str) -> MoveResult:
    """Cross-panel move (``metadata`` <-> ``annotation``); same-panel targets are a no-op success."""
    i = _index(fields, column)
    if i < 0:
        return MoveResult(False, "Dragged field not found in configuration", list(fields), FIELD_NOT_FOUND)
    f = fields[i]
    if target_panel == f.panel:
        return MoveResult(True, f'"{f.label}" is already in the {target_panel} panel', list(fields))

    out = list(fields)
    if target_panel == "annotation":
        if f.is_primary_key:
            return MoveResult(
                False, "Primary key fields cannot be moved to annotation panel", list(fields), PRIMARY_KEY_RESTRICTION
            )
        out[i] = f.model_copy(update={"is_annotation_field": True, "is_primary_key": False})
        return MoveResult(True, f'"{f.label}" moved to annotation panel', out)

    if f.is_new_column:
        return MoveResult(False, "New columns cannot be moved back to metadata panel", list(fields), NEW_COLUMN_RESTRICTION)
    out[i] = f.model_copy(update={"is_annotation_field": False})
    return MoveResult(True, f'"{f.label}" moved to metadata panel', out)


def reorder_fields(fields: list[AnnotationField], dragged: str, target: str) -> MoveResult:
    """Move ``dragged`` to the position currently held by ``target`` (same panel only)."""
    if dragged == target:
        return MoveResult(False, "Cannot drop field on itself", list(fields), SELF_DROP)
    di = _index(fields, dragged)
    ti = _index(fields, target)
    if di < 0 or ti < 0:
        return MoveResult(False, "Could not find dragged or target field", list(fields), FIELD_NOT_FOUND)
    if fields[di].panel != fields[ti].panel:
        return MoveResult(False, "Both fields must be in the same panel to reorder", list(fields), INVALID_FIELD_TYPE)
    out = list(fields)
    item = out.pop(di)
    out.insert(ti, item)
    return MoveResult(True, f"{fields[di].panel.capitalize()} fields reordered successfully", out)


def panel_fields(fields: list[AnnotationField], panel: str) -> list[AnnotationField]:
    return [f for f in fields if f.panel == panel]


# ── Labels ─────────────────────────────────────────────────


def add_label(labels: list[AnnotationLabel]) -> list[AnnotationLabel]:
    color = PREDEFINED_COLORS[len(labels) % len(PREDEFINED_COLORS)]
    return [*labels, AnnotationLabel(color=color)]


def update_label(labels: list[AnnotationLabel], index: int, **updates: Any) -> list[AnnotationLabel]:
    if not 0 <= index < len(labels):
        raise IndexError(f"label index out of range: {index}")
    out = list(labels)
    out[index] = labels[index].model_copy(update=updates)
    return out


def remove_label(labels: list[AnnotationLabel], index: int) -> list[AnnotationLabel]:
    return [lb for i, lb in enumerate(labels) if i != index]


# ── New columns ────────────────────────────────────────────


def new_column_id() -> str:
    return str(int(time.time() * 1000))


def add_new_column(columns: list[NewColumn], column_id: Optional[str] = None) -> list[NewColumn]:
    cid = column_id or new_column_id()
    # ids are millisecond stamps; two clicks in one ms would collide
    while any(c.id == cid for c in columns):
        cid = str(int(cid) + 1) if cid.isdigit() else f"{cid}_1"
    return [*columns, NewColumn(id=cid)]


def update_new_column(columns: list[NewColumn], column_id: str, **updates: Any) -> list[NewColumn]:
    if "validation" in updates and isinstance(updates["validation"], dict):
        updates["validation"] = ColumnValidation(**updates["validation"])
    return [c.model_copy(update=updates) if c.id == column_id else c for c in columns]


def remove_new_column(
    columns: list[NewColumn], fields: list[AnnotationField], column_id: str
) -> tuple[list[NewColumn], list[AnnotationField]]:
    """Drop the column and every field backed by it."""
    return (
        [c for c in columns if c.id != column_id],
        [f for f in fields if f.new_column_id != column_id],
    )


def add_new_column_as_field(columns: list[NewColumn], fields: list[AnnotationField], column_id: str) -> list[AnnotationField]:
    col = next((c for c in columns if c.id == column_id), None)
    if col is None:
        return list(fields)
    if any(f.new_column_id == column_id for f in fields):
        return list(fields)
    field = AnnotationField(
        csv_column_name=col.column_name,
        field_name=col.column_name,
        field_type="text",
        is_required=col.is_required,
        is_annotation_field=True,
        is_new_column=True,
        new_column_id=column_id,
    )
    return [*fields, field]


def validate_new_column(col: NewColumn) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []
    if not col.column_name.strip():
        errors.append("Column name is required")
    if col.column_type in ("select", "multiselect") and not [o for o in col.options if o.strip()]:
        errors.append(f'"{col.column_name or col.id}" needs at least one option')
    v = col.validation
    if col.column_type in ("selectrange", "number") and v.min is not None and v.max is not None and v.min > v.max:
        errors.append(f'"{col.column_name or col.id}": minimum must not exceed maximum')
    if v.min_length is not None and v.max_length is not None and v.min_length > v.max_length:
        errors.append(f'"{col.column_name or col.id}": min length must not exceed max length')
    if v.pattern:
        try:
            re.compile(v.pattern)
        except re.error as e:
            errors.append(f'"{col.column_name or col.id}": invalid pattern ({e})')
    if col.default_value and col.column_type == "select" and col.default_value not in col.options:
        warnings.append(f'"{col.column_name}": default value is not one of the options')
    return ValidationResult(len(errors) == 0, errors, warnings)


# ── Whole config ───────────────────────────────────────────


def validate_config(
    fields: list[AnnotationField], new_columns: Optional[list[NewColumn]] = None
) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    pks = [f.csv_column_name for f in fields if f.is_primary_key]
    if len(pks) > 1:
        errors.append(f"Only one primary key is allowed (found: {', '.join(pks)})")
    for f in fields:
        if f.is_primary_key and f.is_annotation_field:
            errors.append(f'Primary key "{f.csv_column_name}" cannot be an annotation field')

    seen: set[str] = set()
    for f in fields:
        name = f.field_name.strip()
        if not name:
            errors.append(f'Field for column "{f.csv_column_name}" has no display name')
            continue
        if name in seen:
            errors.append(f'Duplicate field name: "{name}"')
        seen.add(name)

    if not any(f.panel == "annotation" for f in fields):
        warnings.append("No annotation fields selected; annotators will only see metadata.")

    for col in new_columns or []:
        vr = validate_new_column(col)
        errors.extend(vr.errors)
        warnings.extend(vr.warnings)

    return ValidationResult(len(errors) == 0, errors, warnings)


def build_save_payload(
    fields: list[AnnotationField], labels: list[AnnotationLabel], new_columns: list[NewColumn]
) -> dict[str, Any]:
    return {
        "annotationFields": [
            {
                "csvColumnName": f.csv_column_name,
                "fieldName": f.field_name,
                "fieldType": f.field_type,
                "isRequired": f.is_required,
                "isAnnotationField": f.is_annotation_field,
                "isPrimaryKey": f.is_primary_key,
                "isVisible": f.is_visible,
                "options": list(f.options),
                "instructions": f.instructions,
                "isNewColumn": f.is_new_column,
                "newColumnId": f.new_column_id,
            }
            for f in fields
        ],
        "annotationLabels": [
            {"name": lb.name, "color": lb.color, "description": lb.description, "hotkey": lb.hotkey} for lb in labels
        ],
        "newColumns": [c.to_payload() for c in new_columns],
    }


def sync_new_column_fields(columns: list[NewColumn], fields: list[AnnotationField]) -> list[AnnotationField]:
    """Fields backed by a new column follow its (non-blank) name and required flag."""
    by_id = {c.id: c for c in columns}
    out: list[AnnotationField] = []
    for f in fields:
        col = by_id.get(f.new_column_id or "")
        if f.is_new_column and col is not None and col.column_name.strip():
            name = col.column_name.strip()
            out.append(f.model_copy(update={"csv_column_name": name, "field_name": name, "is_required": col.is_required}))
        else:
            out.append(f)
    return out
