from __future__ import annotations

import logging
import streamlit as st
from typing import Any, Optional

st.set_page_config(page_title="Field Config - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from annostudio import annotation_utils, field_config_utils as fcu, ui_utils
from annostudio.api import csv_imports, field_selection
from annostudio.api import datasets as datasets_api
from annostudio.exceptions import ApiError, FieldConfigError
from annostudio.models import COLUMN_TYPES, FIELD_TYPES, AnnotationField, Dataset
from annostudio.state import bump_field_config_rev, ensure_state, get_api_client, get_dataset_id, require_login

logger = logging.getLogger(__name__)

ui_utils.load_app_style()

_DRAFT_KEY = "field_config_draft"  # dict: dataset_id -> draft dict


def _columns_for(client, dataset: Dataset) -> list[str]:
    if dataset.column_names:
        return dataset.column_names
    imports = csv_imports.list_for_dataset(client, dataset.id)
    return list(imports[0].columns) if imports else []


def _load_draft(client, dataset: Dataset) -> Optional[dict[str, Any]]:
    drafts: dict = st.session_state.setdefault(_DRAFT_KEY, {})
    if dataset.id in drafts:
        return drafts[dataset.id]
    columns = _columns_for(client, dataset)
    if not columns:
        return None
    config = field_selection.get_config(client, dataset.id)
    existing = annotation_utils.normalize_fields(config.annotation_fields) if config else []
    draft = {
        "fields": fcu.fields_from_columns(columns, existing),
        "labels": list(config.annotation_labels) if config else [],
        "new_columns": list(config.new_columns) if config else [],
        "saved": config is not None,
        "ver": 0,
    }
    drafts[dataset.id] = draft
    return draft


def _commit(draft: dict[str, Any], **updates: Any) -> None:
    """Store a structural change and rebuild widgets from the new state."""
    draft.update(updates)
    draft["ver"] += 1
    st.rerun()


def _apply_move(draft: dict[str, Any], result: fcu.MoveResult) -> None:
    if not result.success:
        st.toast(result.message, icon="⛔")
        return
    st.toast(result.message, icon="↔️")
    _commit(draft, fields=result.fields)


def _render_field_row(draft: dict[str, Any], f: AnnotationField, prev: Optional[AnnotationField], k: str) -> None:
    fields = draft["fields"]
    with st.container(border=True):
        c1, c2, c3 = st.columns([5, 1, 1])
        tags = []
        if f.is_primary_key:
            tags.append("🔑 primary key")
        if f.is_new_column:
            tags.append("🆕 new column")
        if f.is_required:
            tags.append("required")
        c1.markdown(f"**{f.label}**  \n<span class='muted'>`{f.csv_column_name}` · {f.field_type} {' · '.join(tags)}</span>", unsafe_allow_html=True)
        if prev is not None and c2.button("↑", key=f"{k}_up", help="Move above the previous field"):
            _apply_move(draft, fcu.reorder_fields(fields, f.csv_column_name, prev.csv_column_name))
        target = "annotation" if f.panel == "metadata" else "metadata"
        arrow = "→" if target == "annotation" else "←"
        if c3.button(arrow, key=f"{k}_move", help=f"Move to {target} panel"):
            _apply_move(draft, fcu.move_field(fields, f.csv_column_name, target))

        with st.expander("Edit", expanded=False):
            name = st.text_input("Display name", value=f.field_name, key=f"{k}_name")
            ftype = st.selectbox("Type", FIELD_TYPES, index=FIELD_TYPES.index(f.field_type), key=f"{k}_type")
            required = st.checkbox("Required", value=f.is_required, key=f"{k}_req")
            visible = st.checkbox("Visible", value=f.is_visible, key=f"{k}_vis")
            instructions = st.text_area("Instructions", value=f.instructions or "", key=f"{k}_instr")
            updates = {
                "field_name": name,
                "field_type": ftype,
                "is_required": required,
                "is_visible": visible,
                "instructions": instructions or None,
            }
            if any(getattr(f, key) != value for key, value in updates.items()):
                draft["fields"] = fcu.update_field(draft["fields"], f.csv_column_name, **updates)


def _render_panels(draft: dict[str, Any], dsid: str) -> None:
    left, right = st.columns(2)
    for col, panel, title in ((left, "metadata", "Metadata (read-only)"), (right, "annotation", "Annotation")):
        with col:
            items = fcu.panel_fields(draft["fields"], panel)
            st.subheader(f"{title} · {len(items)}")
            if not items:
                st.caption("No fields in this panel.")
            for i, f in enumerate(items):
                _render_field_row(draft, f, items[i - 1] if i > 0 else None, f"fc_{dsid}_{draft['ver']}_{panel}_{i}")


def _render_primary_key(draft: dict[str, Any], dsid: str) -> None:
    candidates = [f.csv_column_name for f in draft["fields"] if not f.is_new_column]
    pk = fcu.primary_key(draft["fields"])
    options = ["(none)"] + candidates
    current = options.index(pk.csv_column_name) if pk and pk.csv_column_name in candidates else 0
    choice = st.sidebar.selectbox("Primary key", options, index=current, key=f"pk_{dsid}_{draft['ver']}")
    if choice == options[current]:
        return
    try:
        fields = fcu.clear_primary_key(draft["fields"]) if choice == "(none)" else fcu.set_primary_key(draft["fields"], choice)
    except FieldConfigError as e:
        st.sidebar.error(str(e))
        return
    _commit(draft, fields=fields)


def _render_labels(draft: dict[str, Any], dsid: str) -> None:
    st.subheader("Labels")
    labels = draft["labels"]
    for i, lb in enumerate(labels):
        k = f"lb_{dsid}_{draft['ver']}_{i}"
        c1, c2, c3, c4, c5 = st.columns([3, 1, 4, 1, 1])
        name = c1.text_input("Name", value=lb.name, key=f"{k}_name")
        color = c2.color_picker("Colour", value=lb.color, key=f"{k}_color")
        desc = c3.text_input("Description", value=lb.description, key=f"{k}_desc")
        hotkey = c4.text_input("Key", value=lb.hotkey, max_chars=1, key=f"{k}_hot")
        if (name, color, desc, hotkey) != (lb.name, lb.color, lb.description, lb.hotkey):
            draft["labels"] = fcu.update_label(draft["labels"], i, name=name, color=color, description=desc, hotkey=hotkey)
        if c5.button("✕", key=f"{k}_rm"):
            _commit(draft, labels=fcu.remove_label(draft["labels"], i))
    if st.button("➕ Add label", key=f"lb_add_{dsid}"):
        _commit(draft, labels=fcu.add_label(labels))


def _render_new_columns(draft: dict[str, Any], dsid: str) -> None:
    st.subheader("New columns")
    st.caption("Columns that do not exist in the uploaded files; annotators fill them in.")
    for col in draft["new_columns"]:
        k = f"nc_{dsid}_{draft['ver']}_{col.id}"
        linked = any(f.new_column_id == col.id for f in draft["fields"])
        with st.container(border=True):
            c1, c2, c3 = st.columns([3, 2, 1])
            name = c1.text_input("Column name", value=col.column_name, key=f"{k}_name")
            ctype = c2.selectbox("Type", COLUMN_TYPES, index=COLUMN_TYPES.index(col.column_type), key=f"{k}_type")
            required = c3.checkbox("Required", value=col.is_required, key=f"{k}_req")
            updates: dict[str, Any] = {"column_name": name, "column_type": ctype, "is_required": required}
            if ctype in ("select", "multiselect"):
                raw = st.text_input("Options (comma separated)", value=", ".join(col.options), key=f"{k}_opts")
                updates["options"] = [o.strip() for o in raw.split(",") if o.strip()]
            if ctype in ("selectrange", "number"):
                d1, d2 = st.columns(2)
                lo = d1.number_input("Min", value=float(col.validation.min if col.validation.min is not None else 0), key=f"{k}_min")
                hi = d2.number_input("Max", value=float(col.validation.max if col.validation.max is not None else 10), key=f"{k}_max")
                updates["validation"] = {**col.validation.model_dump(), "min": lo, "max": hi}
            d1, d2 = st.columns(2)
            updates["default_value"] = d1.text_input("Default value", value=col.default_value, key=f"{k}_def")
            updates["placeholder"] = d2.text_input("Placeholder", value=col.placeholder, key=f"{k}_ph")

            draft["new_columns"] = fcu.update_new_column(draft["new_columns"], col.id, **updates)
            draft["fields"] = fcu.sync_new_column_fields(draft["new_columns"], draft["fields"])
            current = next(c for c in draft["new_columns"] if c.id == col.id)
            ui_utils.render_errors(fcu.validate_new_column(current).errors)

            b1, b2, _ = st.columns([2, 1, 3])
            if b1.button("Add as annotation field", key=f"{k}_asfield", disabled=linked or not name.strip()):
                _commit(draft, fields=fcu.add_new_column_as_field(draft["new_columns"], draft["fields"], col.id))
            if b2.button("Remove", key=f"{k}_rm"):
                cols, fields = fcu.remove_new_column(draft["new_columns"], draft["fields"], col.id)
                _commit(draft, new_columns=cols, fields=fields)
    if st.button("➕ Add new column", key=f"nc_add_{dsid}"):
        _commit(draft, new_columns=fcu.add_new_column(draft["new_columns"]))


def _save(client, dataset: Dataset, draft: dict[str, Any]) -> None:
    vr = fcu.validate_config(draft["fields"], draft["new_columns"])
    ui_utils.render_warnings(vr.warnings)
    if not vr.ok:
        ui_utils.render_errors(vr.errors)
        return
    payload = fcu.build_save_payload(draft["fields"], draft["labels"], draft["new_columns"])
    try:
        with st.spinner("Saving configuration..."):
            field_selection.save_config(client, dataset.id, payload)
    except ApiError as e:
        ui_utils.toast_error("Saving field configuration", e)
        return
    bump_field_config_rev(dataset.id)
    st.session_state[_DRAFT_KEY].pop(dataset.id, None)
    ui_utils.flash("Field configuration saved")
    st.rerun()


def main() -> None:
    ensure_state()
    st.title("Field Configuration")
    st.caption("Choose which columns annotators see as metadata and which they annotate.")

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
        draft = _load_draft(client, dataset)
    except ApiError as e:
        ui_utils.toast_error("Loading field configuration", e)
        st.error(f"Could not load field configuration: {e}")
        return
    if draft is None:
        st.info("Upload a file to this dataset before configuring its fields.")
        return

    st.sidebar.header(dataset.name)
    st.sidebar.caption("Saved configuration loaded" if draft["saved"] else "No saved configuration yet")
    _render_primary_key(draft, dataset.id)
    if st.sidebar.button("Discard changes", use_container_width=True):
        st.session_state[_DRAFT_KEY].pop(dataset.id, None)
        st.rerun()

    _render_panels(draft, dataset.id)
    st.divider()
    _render_labels(draft, dataset.id)
    st.divider()
    _render_new_columns(draft, dataset.id)
    st.divider()

    if st.button("💾 Save configuration", type="primary"):
        _save(client, dataset, draft)


if __name__ == "__main__":
    main()
