from __future__ import annotations

import logging
import pandas as pd
import streamlit as st
from typing import Optional

st.set_page_config(page_title="Data Overview - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from annostudio import annotation_utils, dataset_utils, export_utils, plot_utils, ui_utils, upload_utils
from annostudio.api import csv_imports, field_selection, merged_rows
from annostudio.api import datasets as datasets_api
from annostudio.exceptions import ApiError
from annostudio.models import CSVImport, Dataset
from annostudio.state import (
    ensure_state,
    get_api_client,
    get_dataset_id,
    get_field_config_rev,
    require_login,
    reset_workbench,
)

logger = logging.getLogger(__name__)

ui_utils.load_app_style()

_CONFIG_CACHE = "overview_config_cache"  # dict: dataset_id -> (revision, has_config)
_EXPORT_KEY = "overview_exports"  # dict: dataset_id -> list[ExportResult]


def _has_config(client, dataset_id: str) -> bool:
    """Cached per field-config revision; saving a config elsewhere forces a refetch."""
    cache: dict = st.session_state.setdefault(_CONFIG_CACHE, {})
    rev = get_field_config_rev(dataset_id)
    hit = cache.get(dataset_id)
    if hit is not None and hit[0] == rev:
        return hit[1]
    try:
        has = field_selection.check_config(client, dataset_id)
    except ApiError as e:
        ui_utils.toast_error("Checking field configuration", e)
        has = False
    cache[dataset_id] = (rev, has)
    return has


def _imports_frame(imports: list[CSVImport]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "File": i.display_name,
                "Rows": i.total_rows,
                "Size": upload_utils.format_file_size(i.file_size),
                "Status": i.status or "-",
                "Created": dataset_utils.format_date(i.created_at),
            }
            for i in imports
        ],
        columns=["File", "Rows", "Size", "Status", "Created"],
    )


def _render_imports(client, dataset: Dataset, imports: list[CSVImport]) -> None:
    st.subheader("Imported files")
    if not imports:
        st.info("No files uploaded yet. Use the **Upload** page to add a CSV or Excel file.")
        return
    st.dataframe(_imports_frame(imports), use_container_width=True, hide_index=True)
    st.caption(f"{len(imports)} file(s) · {sum(i.total_rows for i in imports):,} rows in total")

    with st.expander("Delete an import", expanded=False):
        choice = st.selectbox(
            "File", options=[i.id for i in imports], format_func=lambda x: next(i.display_name for i in imports if i.id == x)
        )
        confirm = st.checkbox("I understand this removes the file's rows and their annotations.")
        if st.button("Delete import", disabled=not confirm):
            try:
                csv_imports.delete_import(client, dataset.id, choice)
            except ApiError as e:
                ui_utils.toast_error("Deleting import", e)
                return
            reset_workbench(dataset.id)
            ui_utils.flash("Import deleted", icon="🗑️")
            st.rerun()


def _render_progress(client, dataset: Dataset) -> None:
    try:
        progress = merged_rows.annotation_progress(client, dataset.id)
    except ApiError as e:
        logger.info("Progress unavailable for %s: %s", dataset.id, e)
        return
    st.subheader("Annotation progress")
    c1, c2, c3 = st.columns(3)
    c1.metric("Rows", f"{progress.total_rows:,}")
    c2.metric("Completed", f"{progress.completed_rows:,}")
    c3.metric("Progress", f"{progress.progress_percentage:.1f}%")
    st.progress(min(1.0, max(0.0, progress.progress_percentage / 100)))
    if progress.csv_breakdown:
        st.plotly_chart(plot_utils.plot_csv_progress(plot_utils.progress_frame(progress.csv_breakdown)), use_container_width=True)


def _build_exports(client, dataset: Dataset) -> Optional[list[export_utils.ExportResult]]:
    data = merged_rows.get_dataset_data(client, dataset.id)
    vr = export_utils.validate_dataset_data(data)
    if not vr.ok:
        ui_utils.render_warnings(vr.errors)
    if not data.merged_rows:
        st.error("Nothing to export: the dataset has no merged rows yet.")
        return None

    results = [export_utils.all_columns_export(data, dataset)]
    config = field_selection.get_config(client, dataset.id)
    if config is not None and config.annotation_fields:
        fields = annotation_utils.normalize_fields(config.annotation_fields)
        results.insert(0, export_utils.selected_columns_export(data, fields, dataset.name))
    return results


def _render_exports(client, dataset: Dataset, has_config: bool) -> None:
    st.subheader("Export")
    st.caption("CSV files with a UTF-8 BOM, so spreadsheets open them with the right encoding.")
    store: dict = st.session_state.setdefault(_EXPORT_KEY, {})
    if st.button("Prepare exports"):
        try:
            with st.spinner("Collecting rows..."):
                results = _build_exports(client, dataset)
        except ApiError as e:
            ui_utils.toast_error("Export", e)
            results = None
        if results is not None:
            store[dataset.id] = results
            st.toast(results[-1].message, icon="📦")

    results = store.get(dataset.id) or []
    if not results:
        if not has_config:
            st.caption("Only the all-columns export is available until a field configuration is saved.")
        return
    cols = st.columns(len(results))
    for c, res in zip(cols, results):
        with c:
            label = "Selected columns" if res.kind == "selected_columns" else "All columns"
            st.download_button(
                f"⬇️ {label} ({len(res.headers)} cols)",
                data=res.content,
                file_name=res.filename,
                mime="text/csv",
                use_container_width=True,
                key=f"dl_{res.kind}",
            )
            st.caption(res.message)
    with st.expander("Preview export", expanded=False):
        st.dataframe(results[0].frame().head(20), use_container_width=True, hide_index=True)


def main() -> None:
    ensure_state()
    st.title("Data Overview")

    if require_login() is None:
        return
    ui_utils.show_flashes()

    dataset_id = get_dataset_id()
    if not dataset_id:
        st.info("Pick a dataset on the **Datasets** page first.")
        return

    client = get_api_client()
    try:
        dataset = datasets_api.get_dataset(client, dataset_id)
        imports = csv_imports.list_for_dataset(client, dataset_id)
    except ApiError as e:
        ui_utils.toast_error("Loading dataset", e)
        st.error(f"Could not load dataset: {e}")
        return

    st.caption(f"{dataset.name} · {ui_utils.type_badge(dataset.dataset_type)} · {ui_utils.access_badge(dataset.access_type)}")
    if dataset.description:
        st.write(dataset.description)

    has_config = _has_config(client, dataset.id)
    c1, c2, c3 = st.columns(3)
    with c1:
        if has_config:
            st.success("Field configuration saved")
        else:
            st.warning("No field configuration yet")
    with c2:
        if st.button("Configure fields", use_container_width=True, disabled=not imports):
            st.switch_page("pages/05_Field_Config.py")
    with c3:
        if st.button("Start annotation", type="primary", use_container_width=True, disabled=not has_config):
            st.switch_page("pages/06_Annotation.py")

    st.divider()
    _render_imports(client, dataset, imports)
    if imports:
        _render_progress(client, dataset)
        st.divider()
        _render_exports(client, dataset, has_config)


if __name__ == "__main__":
    main()
