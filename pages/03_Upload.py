from __future__ import annotations

import pandas as pd
import streamlit as st
from typing import Optional

st.set_page_config(page_title="Upload - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from annostudio import ui_utils, upload_utils
from annostudio.api import csv_imports, csv_processing
from annostudio.api import datasets as datasets_api
from annostudio.exceptions import ApiError, UploadError
from annostudio.models import Dataset, HeaderValidationResult
from annostudio.state import ensure_state, get_api_client, get_dataset_id, require_login, set_dataset_id

ui_utils.load_app_style()

_VALIDATION_KEY = "upload_validation"  # dict: file signature -> HeaderValidationResult


def _file_sig(dataset_id: str, uploaded) -> str:
    return f"{dataset_id}::{uploaded.name}::{uploaded.size}"


def _select_dataset(client) -> Optional[Dataset]:
    try:
        datasets = datasets_api.list_datasets(client)
    except ApiError as e:
        ui_utils.toast_error("Loading datasets", e)
        st.error(f"Could not load datasets: {e}")
        return None
    if not datasets:
        st.info("Create a dataset on the **Datasets** page first.")
        return None

    ids = [d.id for d in datasets]
    current = get_dataset_id()
    index = ids.index(current) if current in ids else 0
    chosen = st.sidebar.selectbox(
        "Dataset",
        options=ids,
        index=index,
        format_func=lambda i: next(d.name for d in datasets if d.id == i),
    )
    if chosen != current:
        set_dataset_id(chosen)
    return next(d for d in datasets if d.id == chosen)


def _render_preview(preview: upload_utils.UploadPreview, size: int) -> None:
    st.subheader("Preview")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Format", preview.file_format.upper())
    c2.metric("Rows", f"{preview.total_rows:,}")
    c3.metric("Columns", f"{len(preview.columns):,}")
    c4.metric("Size", upload_utils.format_file_size(size))

    if preview.duplicate_columns:
        st.error("Duplicate column names must be fixed before the file can be uploaded.")
    ui_utils.render_warnings(preview.warnings)

    if preview.sample_rows:
        st.dataframe(pd.DataFrame(preview.sample_rows), use_container_width=True, hide_index=True)
    else:
        st.info("The file has a header row but no data rows.")


def _render_validation(result: HeaderValidationResult) -> None:
    if result.existing_import_count == 0:
        st.success("This is the first file for the dataset: any header is accepted.")
        return
    if result.is_valid:
        st.success(f"Headers match the {result.existing_import_count} existing import(s).")
        return
    st.error("Headers do not match the dataset's existing files.")
    rows = [
        {
            "Issue": e.error_type.replace("_", " ").title(),
            "Column": e.column_name,
            "Expected": e.expected_column_name or "",
            "Details": e.message,
        }
        for e in result.errors
    ]
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    with st.expander("Compare headers", expanded=False):
        c1, c2 = st.columns(2)
        c1.markdown("**Expected**")
        c1.code("\n".join(result.expected_headers) or "-")
        c2.markdown("**This file**")
        c2.code("\n".join(result.new_headers) or "-")


def _validate(client, dataset: Dataset, uploaded, content: bytes, preview) -> Optional[HeaderValidationResult]:
    try:
        return csv_processing.validate_headers(client, dataset.id, uploaded.name, content, uploaded.type or "")
    except ApiError as e:
        ui_utils.toast_error("Header validation", e)
    # offline check against the dataset's known columns
    try:
        imports = csv_imports.list_for_dataset(client, dataset.id)
    except ApiError:
        return None
    st.info("Server validation unavailable; showing a local header comparison.")
    expected = upload_utils.expected_header(dataset.column_names, imports)
    return upload_utils.local_header_check(dataset.id, expected, preview.columns, len(imports))


def main() -> None:
    ensure_state()
    st.title("Upload")
    st.caption("Add a CSV or Excel file to a dataset. Headers must match the dataset's existing files.")

    if require_login() is None:
        return
    ui_utils.show_flashes()
    client = get_api_client()

    st.sidebar.header("Target")
    dataset = _select_dataset(client)
    if dataset is None:
        return

    uploaded = st.file_uploader("CSV / Excel file", type=list(upload_utils.SUPPORTED_EXTENSIONS))
    if uploaded is None:
        st.info("Choose a .csv, .xlsx or .xls file to preview it.")
        return

    content = uploaded.getvalue()
    try:
        preview = upload_utils.build_preview(uploaded.name, content)
    except UploadError as e:
        st.error(str(e))
        return
    _render_preview(preview, uploaded.size)

    validations: dict = st.session_state.setdefault(_VALIDATION_KEY, {})
    sig = _file_sig(dataset.id, uploaded)

    st.subheader("Validate & upload")
    c1, c2 = st.columns(2)
    with c1:
        if st.button("Validate headers", use_container_width=True, disabled=not preview.can_upload):
            with st.spinner("Validating headers..."):
                result = _validate(client, dataset, uploaded, content, preview)
            if result is not None:
                validations[sig] = result

    result = validations.get(sig)
    blocked = not preview.can_upload or (result is not None and not result.is_valid)
    with c2:
        if st.button("Upload", type="primary", use_container_width=True, disabled=blocked):
            try:
                with st.spinner(f"Uploading {uploaded.name}..."):
                    res = csv_processing.upload_csv(client, dataset.id, uploaded.name, content, uploaded.type or "")
            except ApiError as e:
                ui_utils.toast_error("Upload", e)
            else:
                validations.pop(sig, None)
                ui_utils.flash(f"Uploaded {res.file_name or uploaded.name}: {res.total_rows:,} rows")
                st.rerun()

    if result is not None:
        _render_validation(result)
    elif preview.can_upload:
        st.caption("Validate headers before uploading to catch mismatches early.")


if __name__ == "__main__":
    main()
