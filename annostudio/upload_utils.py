from __future__ import annotations

import csv
import io
import logging
import math
import os
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Optional

from annostudio.exceptions import UploadError
from annostudio.models import CSVImport, HeaderValidationError, HeaderValidationResult

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("csv", "xlsx", "xls")
_ENCODINGS = ("utf-8-sig", "latin-1")
_DELIMITERS = ",;\t|"
_SNIFF_LINES = 10


@dataclass(frozen=True)
class UploadPreview:
    file_name: str
    file_format: str
    columns: list[str]
    sample_rows: list[dict[str, Any]]
    total_rows: int
    duplicate_columns: list[str] = field(default_factory=list)
    unnamed_columns: list[int] = field(default_factory=list)
    empty_columns: list[str] = field(default_factory=list)

    @property
    def can_upload(self) -> bool:
        return not self.duplicate_columns

    @property
    def warnings(self) -> list[str]:
        out: list[str] = []
        if self.duplicate_columns:
            out.append(
                f"Duplicate column names found: {', '.join(self.duplicate_columns)}. "
                "Rename them before uploading."
            )
        if self.unnamed_columns:
            pos = ", ".join(str(i + 1) for i in self.unnamed_columns)
            out.append(f"Unnamed columns at position(s) {pos}.")
        if self.empty_columns:
            out.append(f"Columns with no values: {', '.join(self.empty_columns)}.")
        return out


def file_format(file_name: str) -> str:
    """Lower-case extension without the dot; raises UploadError if unsupported."""
    ext = os.path.splitext(file_name or "")[1].lower().lstrip(".")
    if ext not in SUPPORTED_EXTENSIONS:
        raise UploadError(f"Unsupported file type: .{ext or '?'} (only .csv, .xlsx and .xls are accepted)")
    return ext


def _decode(content: bytes) -> str:
    last: Optional[Exception] = None
    for enc in _ENCODINGS:
        try:
            return content.decode(enc)
        except UnicodeDecodeError as e:
            last = e
    raise UploadError(f"Could not decode file: {last}")


def sniff_delimiter(text: str) -> str:
    """Delimiter guessed from the first lines; ``,`` when nothing consistent is found."""
    sample = "\n".join(text.splitlines()[:_SNIFF_LINES])
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS).delimiter
    except csv.Error:
        # single-column files have no delimiter at all
        return ","


def _read_csv(content: bytes, **kwargs: Any) -> pd.DataFrame:
    text = _decode(content)
    return pd.read_csv(io.StringIO(text), sep=sniff_delimiter(text), **kwargs)


def _read_table(file_name: str, content: bytes, **kwargs: Any) -> pd.DataFrame:
    fmt = file_format(file_name)
    if not content:
        raise UploadError("The selected file is empty.")
    try:
        if fmt == "csv":
            return _read_csv(content, **kwargs)
        engine = "xlrd" if fmt == "xls" else "openpyxl"
        return pd.read_excel(io.BytesIO(content), sheet_name=0, engine=engine, **kwargs)
    except UploadError:
        raise
    except pd.errors.EmptyDataError as e:
        raise UploadError("The selected file has no header row.") from e
    except (ValueError, pd.errors.ParserError) as e:
        raise UploadError(f"Could not parse {file_name}: {e}") from e


def _cell_str(v: Any) -> str:
    if v is None or (isinstance(v, float) and math.isnan(v)):
        return ""
    return str(v).strip()


def read_raw_header(file_name: str, content: bytes) -> list[str]:
    """Header row as written in the file (no de-duplication), each cell trimmed."""
    head = _read_table(file_name, content, header=None, nrows=1, dtype=str, keep_default_na=False)
    if head.empty:
        return []
    return [_cell_str(v) for v in head.iloc[0].tolist()]


def find_duplicate_columns(columns: list[str]) -> list[str]:
    """Names that appear more than once, each reported once in first-repeat order (blanks ignored)."""
    seen: set[str] = set()
    dups: list[str] = []
    for c in columns:
        name = (c or "").strip()
        if not name:
            continue
        if name in seen and name not in dups:
            dups.append(name)
        seen.add(name)
    return dups


def find_unnamed_columns(columns: list[str]) -> list[int]:
    return [i for i, c in enumerate(columns) if not (c or "").strip()]


def display_columns(columns: list[str]) -> list[str]:
    """Unique labels for display: blanks become ``Unnamed: i``, repeats get `` (2)``, `` (3)``..."""
    counts: dict[str, int] = {}
    out: list[str] = []
    for i, c in enumerate(columns):
        base = (c or "").strip() or f"Unnamed: {i}"
        counts[base] = counts.get(base, 0) + 1
        out.append(base if counts[base] == 1 else f"{base} ({counts[base]})")
    return out


def display_frame(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    """Copy of ``df`` with unique display column labels and string cells (safe for st.dataframe)."""
    out = df.copy()
    out.columns = display_columns(columns)[: len(out.columns)]
    for c in out.columns:
        out[c] = out[c].map(_cell_str)
    return out


def build_preview(file_name: str, content: bytes, sample_rows: int = 5) -> UploadPreview:
    fmt = file_format(file_name)
    raw_header = read_raw_header(file_name, content)
    if not raw_header:
        raise UploadError("The selected file has no header row.")
    df = _read_table(file_name, content, header=0, dtype=str, keep_default_na=False)
    shown = display_frame(df, raw_header)

    empty = [
        label
        for label, original in zip(shown.columns, raw_header)
        if original and (shown[label] == "").all()
    ]
    preview = UploadPreview(
        file_name=file_name,
        file_format=fmt,
        columns=raw_header,
        sample_rows=shown.head(max(0, int(sample_rows))).to_dict(orient="records"),
        total_rows=int(len(df)),
        duplicate_columns=find_duplicate_columns(raw_header),
        unnamed_columns=find_unnamed_columns(raw_header),
        empty_columns=empty if len(df) else [],
    )
    logger.debug(
        "Preview %s: %d columns, %d rows, duplicates=%s", file_name, len(raw_header), preview.total_rows, preview.duplicate_columns
    )
    return preview


def compare_headers(expected: list[str], new: list[str]) -> list[HeaderValidationError]:
    """Differences between a dataset's established header and a new file's header."""
    if not expected:
        return []
    errors: list[HeaderValidationError] = []
    new_set = set(new)
    exp_set = set(expected)
    for c in expected:
        if c not in new_set:
            errors.append(
                HeaderValidationError(
                    error_type="MISSING_COLUMN", column_name=c, message=f'Column "{c}" is missing from the new file'
                )
            )
    for c in new:
        if c not in exp_set:
            errors.append(
                HeaderValidationError(
                    error_type="EXTRA_COLUMN", column_name=c, message=f'Column "{c}" is not present in existing files'
                )
            )
    if not errors and list(expected) != list(new):
        for pos, (exp, got) in enumerate(zip(expected, new)):
            if exp != got:
                errors.append(
                    HeaderValidationError(
                        error_type="COLUMN_ORDER_MISMATCH",
                        column_name=got,
                        expected_column_name=exp,
                        message=f'Position {pos + 1}: expected "{exp}" but found "{got}"',
                    )
                )
    return errors


def expected_header(available_columns: list[str], imports: list[CSVImport]) -> list[str]:
    """Dataset's known columns, else the columns of its first import."""
    if available_columns:
        return list(available_columns)
    return list(imports[0].columns) if imports else []


def local_header_check(dataset_id: str, expected: list[str], new: list[str], existing_import_count: int) -> HeaderValidationResult:
    errors = compare_headers(expected, new) if existing_import_count > 0 else []
    return HeaderValidationResult(
        is_valid=not errors,
        errors=errors,
        expected_headers=list(expected),
        new_headers=list(new),
        dataset_id=dataset_id,
        existing_import_count=existing_import_count,
    )


def format_file_size(num_bytes: int) -> str:
    if not num_bytes or num_bytes <= 0:
        return "0 Bytes"
    sizes = ("Bytes", "KB", "MB", "GB")
    i = min(int(math.floor(math.log(num_bytes) / math.log(1024))), len(sizes) - 1)
    value = round(num_bytes / math.pow(1024, i), 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {sizes[i]}"
