from __future__ import annotations

import logging
import re
import pandas as pd
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from annostudio.config import get_settings
from annostudio.models import AnnotationField, Dataset, DatasetMergedRows, ValidationResult

logger = logging.getLogger(__name__)

BOM = "\ufeff"
_OBJECT_KEYS = ("url", "href", "src", "link", "value")

_TAG_RULES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"<br\s*/?>", re.I), "\n"),
    (re.compile(r"</p>", re.I), "\n"),
    (re.compile(r"<p[^>]*>", re.I), ""),
    (re.compile(r"<[^>]+>"), ""),
)
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&apos;", "'"),
)
_CONTROL = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_LARGE_NUMBER = re.compile(r"^\d{15,}$")


@dataclass(frozen=True)
class ExportResult:
    kind: str
    filename: str
    headers: list[str]
    rows: list[dict[str, str]]
    content: bytes

    @property
    def message(self) -> str:
        return f"Exported {len(self.headers)} columns with {len(self.rows)} rows successfully"

    def frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.headers)


def clean_html_content(value: Any) -> str:
    """Plain text for a cell value: HTML stripped, entities decoded, control chars dropped."""
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    if isinstance(value, (list, tuple)):
        parts = [clean_html_content(v) for v in value]
        return "\n".join(p for p in parts if p != "")
    if isinstance(value, dict):
        for key in _OBJECT_KEYS:
            if isinstance(value.get(key), str) and value[key]:
                return clean_html_content(value[key])
        return ""
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    for pattern, repl in _TAG_RULES:
        text = pattern.sub(repl, text)
    for ent, ch in _ENTITIES:
        text = text.replace(ent, ch)
    return _CONTROL.sub("", text)


def format_csv_value(value: Any, clean_html: bool = True) -> str:
    text = clean_html_content(value) if clean_html else ("" if value is None else str(value))
    if text == "":
        return ""
    if any(ch in text for ch in (",", '"', "\n", "\r")) or _LARGE_NUMBER.match(text):
        # quoted so spreadsheets keep long ids as text
        return '"' + text.replace('"', '""') + '"'
    return text


def generate_csv_content(headers: list[str], rows: list[dict[str, Any]], clean_html: bool = True) -> str:
    lines = [",".join(format_csv_value(h, clean_html=False) for h in headers)]
    for row in rows:
        lines.append(",".join(format_csv_value(row.get(h), clean_html) for h in headers))
    return "\n".join(lines)


def csv_bytes(content: str) -> bytes:
    """UTF-8 with a BOM so Excel picks the right encoding."""
    return (BOM + content).encode("utf-8")


def safe_name(name: Optional[str]) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "_", name or "") or "dataset"


def export_filename(kind: str, dataset_name: Optional[str], now: Optional[datetime] = None, tz: Optional[str] = None) -> str:
    """Timestamped in the configured timezone (``ANNOSTUDIO_TIMEZONE``, default Asia/Kolkata)."""
    zone = ZoneInfo(tz or get_settings().TIMEZONE)
    moment = now.astimezone(zone) if now is not None else datetime.now(zone)
    return f"{kind}_{safe_name(dataset_name)}_{moment.strftime('%Y-%m-%d_%H-%M-%S')}.csv"


def _cell(data: dict[str, Any], key: str) -> Any:
    v = data.get(key)
    return "" if v is None else v


def selected_columns_rows(data: DatasetMergedRows, fields: list[AnnotationField]) -> tuple[list[str], list[dict[str, Any]]]:
    """Metadata columns keyed by CSV column name, annotation/new columns by field name."""
    keys = [f.field_name if (f.is_annotation_field or f.is_new_column) else f.csv_column_name for f in fields]
    headers = list(dict.fromkeys(keys))
    rows = [{h: _cell(r.data or {}, h) for h in headers} for r in (data.merged_rows or [])]
    return headers, rows


def all_columns_rows(data: DatasetMergedRows, dataset: Optional[Dataset] = None) -> tuple[list[str], list[dict[str, Any]]]:
    """Dataset's availableColumns, else every row key in first-seen order."""
    headers = dataset.column_names if dataset is not None else []
    if not headers:
        seen: dict[str, None] = {}
        for r in data.merged_rows or []:
            for k in (r.data or {}).keys():
                seen.setdefault(k, None)
        headers = list(seen)
    rows = [{h: _cell(r.data or {}, h) for h in headers} for r in (data.merged_rows or [])]
    return headers, rows


def _result(kind: str, headers: list[str], rows: list[dict[str, Any]], dataset_name: Optional[str], now: Optional[datetime]) -> ExportResult:
    if not rows:
        logger.info("Exporting %s with no rows", kind)
    content = generate_csv_content(headers, rows)
    shown = [{h: clean_html_content(r.get(h)) for h in headers} for r in rows]
    return ExportResult(
        kind=kind,
        filename=export_filename(kind, dataset_name, now),
        headers=headers,
        rows=shown,
        content=csv_bytes(content),
    )


def selected_columns_export(
    data: DatasetMergedRows, fields: list[AnnotationField], dataset_name: Optional[str], now: Optional[datetime] = None
) -> ExportResult:
    headers, rows = selected_columns_rows(data, fields)
    return _result("selected_columns", headers, rows, dataset_name, now)


def all_columns_export(
    data: DatasetMergedRows, dataset: Optional[Dataset], now: Optional[datetime] = None
) -> ExportResult:
    headers, rows = all_columns_rows(data, dataset)
    return _result("all_columns", headers, rows, dataset.name if dataset else None, now)


def validate_dataset_data(data: Optional[DatasetMergedRows]) -> ValidationResult:
    issues: list[str] = []
    if data is None:
        return ValidationResult(False, ["Dataset data is missing"], [])
    rows = data.merged_rows
    if not rows:
        issues.append("No merged rows found")
    n = len(rows) if rows is not None else None
    if data.total_rows != n:
        issues.append(f"Row count mismatch: totalRows={data.total_rows}, mergedRows.length={n}")
    if not data.csv_imports:
        issues.append("No CSV imports found")
    return ValidationResult(len(issues) == 0, issues, [])
