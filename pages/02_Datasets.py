from __future__ import annotations

import logging
import streamlit as st

st.set_page_config(page_title="Datasets - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from pydantic import ValidationError

from annostudio import dataset_utils, ui_utils
from annostudio.api import datasets as datasets_api
from annostudio.config import get_settings
from annostudio.exceptions import ApiError
from annostudio.models import DATASET_TYPES, Dataset
from annostudio.schemas import CreateDatasetForm, form_errors
from annostudio.state import KEYS, ensure_state, get_api_client, require_login, set_dataset_id

logger = logging.getLogger(__name__)

ui_utils.load_app_style()


def _search(client, query: str) -> list[Dataset]:
    """Server search first; any failure falls back to filtering the full list locally."""
    if not query.strip():
        return datasets_api.list_datasets(client)
    try:
        return datasets_api.search_datasets(client, query.strip())
    except ApiError as e:
        logger.info("Server search failed (%s), filtering locally", e)
        return dataset_utils.filter_datasets(datasets_api.list_datasets(client), query)


def _render_create_form(client) -> None:
    with st.expander("➕ Create dataset", expanded=False):
        with st.form("create_dataset", clear_on_submit=False):
            name = st.text_input("Name", max_chars=100, placeholder="customer-feedback-2024")
            description = st.text_area("Description", max_chars=500)
            dataset_type = st.selectbox(
                "Dataset type", options=list(DATASET_TYPES), index=None, placeholder="Select a dataset type"
            )
            submitted = st.form_submit_button("Create", type="primary")
        if not submitted:
            return
        try:
            form = CreateDatasetForm(name=name, description=description, dataset_type=dataset_type or "")
        except ValidationError as e:
            ui_utils.render_errors(form_errors(e))
            return
        try:
            ds = datasets_api.create_dataset(client, form.to_payload())
        except ApiError as e:
            ui_utils.toast_error("Creating dataset", e)
            return
        ui_utils.flash(f'Dataset "{ds.name}" created')
        st.rerun()


def _render_delete_confirm(client, datasets: list[Dataset]) -> None:
    pending = st.session_state.get(KEYS.pending_delete)
    if not pending:
        return
    target = next((d for d in datasets if d.id == pending), None)
    if target is None:
        st.session_state[KEYS.pending_delete] = None
        return
    st.warning(f'Delete dataset **{target.name}**? This removes its imports and annotations and cannot be undone.')
    c1, c2, _ = st.columns([1, 1, 4])
    if c1.button("Delete", type="primary", key="confirm_delete"):
        try:
            datasets_api.delete_dataset(client, target.id)
        except ApiError as e:
            ui_utils.toast_error("Deleting dataset", e)
            return
        st.session_state[KEYS.pending_delete] = None
        ui_utils.flash(f'Dataset "{target.name}" deleted', icon="🗑️")
        st.rerun()
    if c2.button("Cancel", key="cancel_delete"):
        st.session_state[KEYS.pending_delete] = None
        st.rerun()


def _open(dataset: Dataset, page: str) -> None:
    set_dataset_id(dataset.id)
    st.switch_page(page)


def _render_card(d: Dataset, can_delete: bool) -> None:
    with st.container(border=True):
        st.markdown(f"#### {d.name}")
        st.caption(d.description or "No description")
        st.write(f"{ui_utils.type_badge(d.dataset_type)} · {ui_utils.access_badge(d.access_type)}")
        st.caption(f"Created {dataset_utils.format_date(d.created_at)}")
        c1, c2, c3, c4 = st.columns(4)
        if c1.button("Open", key=f"open_{d.id}", use_container_width=True):
            _open(d, "pages/04_Data_Overview.py")
        if c2.button("Upload", key=f"upload_{d.id}", use_container_width=True):
            _open(d, "pages/03_Upload.py")
        if c3.button("Settings", key=f"settings_{d.id}", use_container_width=True):
            _open(d, "pages/07_Settings.py")
        if c4.button("Delete", key=f"delete_{d.id}", disabled=not can_delete, use_container_width=True):
            st.session_state[KEYS.pending_delete] = d.id
            st.rerun()


def main() -> None:
    ensure_state()
    st.title("Datasets")
    st.caption("Search, browse and manage your datasets.")

    user = require_login()
    if user is None:
        return
    ui_utils.show_flashes()
    client = get_api_client()

    _render_create_form(client)

    query = st.text_input("Search", value=st.session_state.get(KEYS.search_query, ""), placeholder="Name, description or type")
    if query != st.session_state.get(KEYS.search_query, ""):
        st.session_state[KEYS.search_query] = query
        st.session_state[KEYS.dataset_page] = 1

    try:
        with st.spinner("Loading datasets..."):
            datasets = _search(client, query)
    except ApiError as e:
        ui_utils.toast_error("Loading datasets", e)
        st.error(f"Could not load datasets: {e}")
        return

    _render_delete_confirm(client, datasets)

    if not datasets:
        st.info("No datasets match your search." if query.strip() else "No datasets yet. Create your first one above.")
        return

    per_page = get_settings().DATASETS_PER_PAGE
    n_pages = dataset_utils.total_pages(len(datasets), per_page)
    page = dataset_utils.clamp_page(st.session_state.get(KEYS.dataset_page, 1), n_pages)
    st.caption(f"{len(datasets):,} dataset(s) · page {page} of {n_pages}")

    items = dataset_utils.page_slice(datasets, page, per_page)
    for i in range(0, len(items), 3):
        cols = st.columns(3)
        for c, d in zip(cols, items[i : i + 3]):
            with c:
                _render_card(d, can_delete=user.is_admin or d.owner_id == user.id)

    new_page = ui_utils.render_pagination(page, n_pages, key="datasets")
    if new_page != page:
        st.session_state[KEYS.dataset_page] = new_page
        st.rerun()


if __name__ == "__main__":
    main()
