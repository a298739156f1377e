from __future__ import annotations

import logging
import streamlit as st
from typing import Any, Optional

st.set_page_config(page_title="Annotation - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from annostudio import annotation_utils as au
from annostudio import audio_utils, image_utils, ui_utils
from annostudio.api import annotations as annotations_api
from annostudio.api import datasets as datasets_api
from annostudio.api import field_selection, merged_rows
from annostudio.config import get_settings
from annostudio.exceptions import ApiError
from annostudio.models import AnnotationField, Dataset
from annostudio.state import (
    ensure_state,
    get_api_client,
    get_dataset_id,
    get_image_tracker,
    get_workbench,
    require_login,
    reset_workbench,
)

logger = logging.getLogger(__name__)

ui_utils.load_app_style()


# ── Loading ────────────────────────────────────────────────


def _load(client, dataset: Dataset, wb: dict[str, Any]) -> bool:
    """Fill the workbench once per dataset; False when there is no field configuration."""
    if wb.get("loaded"):
        return True
    config = field_selection.get_config(client, dataset.id)
    if config is None or not config.annotation_fields:
        return False
    data = merged_rows.get_dataset_data(client, dataset.id)
    progress = merged_rows.detailed_progress(client, dataset.id, data)

    tasks = au.build_tasks(data)
    if progress.row_statuses:
        tasks = au.apply_row_statuses(tasks, progress.row_statuses)
    fields = au.normalize_fields(config.annotation_fields)
    wb.update(
        loaded=True,
        tasks=tasks,
        fields=fields,
        labels=list(config.annotation_labels),
        new_columns=list(config.new_columns),
        index=au.resume_index(tasks, progress.last_viewed_row),
        edits={},
        history={},
        images={},
        image_bytes={},
        zoom={},
        form_ver=0,
        outcome=None,
    )
    logger.info("Workbench for %s: %d tasks, resuming at %d", dataset.id, len(tasks), wb["index"])
    return True


def _go_to(client, dataset: Dataset, wb: dict[str, Any], new_index: int) -> None:
    tasks = wb["tasks"]
    new_index = image_utils.clamp_index(new_index, len(tasks))
    if new_index == wb["index"]:
        return
    wb["index"] = new_index
    wb["form_ver"] += 1
    wb["outcome"] = None
    au.record_navigation(client, dataset.id, new_index, tasks)
    st.rerun()


# ── Row form ───────────────────────────────────────────────


def _history(wb: dict[str, Any], row_index: int, start: dict[str, str]) -> au.EditHistory:
    hist = wb["history"].get(row_index)
    if hist is None:
        hist = au.EditHistory()
        hist.push(start)
        wb["history"][row_index] = hist
    return hist


def _render_new_column_input(field_: AnnotationField, column, value: str, key: str) -> str:
    kind = au.input_kind(column)
    label = field_.label + (" *" if field_.is_required else "")
    if kind == "multiselect":
        chosen = st.multiselect(label, column.options, default=[v for v in au.parse_multiselect(value) if v in column.options], key=key)
        return au.join_multiselect(chosen)
    if kind in ("radio", "select"):
        opts = au.choice_options(column)
        index = opts.index(value) if value in opts else None
        if kind == "radio":
            picked = st.radio(label, opts, index=index, horizontal=True, key=key)
        else:
            picked = st.selectbox(label, opts, index=index, placeholder=column.placeholder or "Select...", key=key)
        return picked or ""
    if kind == "number":
        text = st.text_input(label, value=value, placeholder=column.placeholder or "0", key=key)
        if not au.is_number_input(text):
            st.caption("⚠️ Numbers only")
            return value
        return text
    return st.text_area(label, value=value, placeholder=column.placeholder, key=key)


def _render_images(client, dataset: Dataset, wb: dict[str, Any], task: au.Task, field_: AnnotationField, key: str) -> None:
    cell = task.metadata.get(field_.csv_column_name) or task.metadata.get(field_.field_name)
    urls = image_utils.parse_image_urls(cell)
    store_key = (task.row_index, field_.field_name)
    if store_key not in wb["images"]:
        saved = None
        try:
            rec = annotations_api.row_field_annotation(client, dataset.id, task.row_index, field_.field_name)
            saved = rec.images if rec else None
        except ApiError as e:
            logger.info("No saved image annotation for row %s: %s", task.row_index, e)
        wb["images"][store_key] = image_utils.build_image_metadata(urls, saved)
    images = wb["images"][store_key]

    tracker = get_image_tracker(dataset)
    cache: dict = wb["image_bytes"]
    timeout = get_settings().IMAGE_TIMEOUT

    def loader(url: str) -> Optional[bytes]:
        if url not in cache:
            cache[url] = image_utils.fetch_image(url, tracker, timeout=timeout)
        return cache[url]

    def on_select(i: int) -> None:
        wb["images"][store_key] = image_utils.toggle_selection(wb["images"][store_key], i)
        st.rerun()

    def on_retry(url: str) -> None:
        if tracker.retry(url):
            cache.pop(url, None)
        st.rerun()

    st.markdown(f"**{field_.label}** · {image_utils.selected_count(images)} of {len(images)} selected")
    ui_utils.render_image_grid(
        [img.model_dump() for img in images], loader=loader, on_select=on_select, on_retry=on_retry, key=key
    )
    if not images:
        return

    zoom = wb["zoom"]
    zi = zoom.get(store_key)
    with st.expander("Enlarged view & captions", expanded=zi is not None):
        zi = image_utils.clamp_index(zi or 0, len(images))
        c1, c2, c3 = st.columns([1, 6, 1])
        if c1.button("◀", key=f"{key}_zprev", disabled=zi == 0):
            zoom[store_key] = image_utils.navigate(zi, len(images), -1)
            st.rerun()
        if c3.button("▶", key=f"{key}_znext", disabled=zi >= len(images) - 1):
            zoom[store_key] = image_utils.navigate(zi, len(images), +1)
            st.rerun()
        with c2:
            data = loader(images[zi].url)
            if data is not None:
                st.image(data, use_container_width=True)
            st.caption(f"Image {zi + 1} of {len(images)}")
        caption = st.text_input("Caption", value=images[zi].caption, key=f"{key}_cap_{zi}")
        if caption != images[zi].caption:
            wb["images"][store_key] = image_utils.update_caption(images, zi, caption)

    if st.button("Save image annotations", key=f"{key}_save"):
        try:
            annotations_api.save_image_metadata(client, dataset.id, task.row_index, field_.field_name, wb["images"][store_key])
        except ApiError as e:
            ui_utils.toast_error("Saving image annotations", e)
        else:
            st.toast("Image annotations saved", icon="🖼️")


def _render_audio(wb: dict[str, Any], task: au.Task, field_: AnnotationField, value: str, key: str) -> tuple[str, bool]:
    """Segment editor; returns the serialised field value and whether a segment was removed."""
    src = task.metadata.get(field_.csv_column_name) or ""
    segments = audio_utils.sort_segments(audio_utils.load_segments(value))
    st.markdown(f"**{field_.label}**")

    seek = st.number_input("Play from (s)", min_value=0.0, value=0.0, step=0.5, key=f"{key}_seek")
    if isinstance(src, str) and src.startswith(("http://", "https://")):
        st.audio(src, start_time=int(seek))
    else:
        st.caption("No audio URL in this row.")
    hit = audio_utils.segment_at(segments, seek)
    if hit is not None:
        st.caption(f"At {audio_utils.format_time(seek)}: **{hit.label}** {hit.transcription}")

    label_names = [lb.name for lb in wb["labels"] if lb.name]
    with st.form(f"{key}_seg_form", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        start = c1.number_input("Start (s)", min_value=0.0, step=0.1, key=f"{key}_start")
        end = c2.number_input("End (s)", min_value=0.0, step=0.1, key=f"{key}_end")
        label = c3.selectbox("Label", label_names, index=None, placeholder="Select a label", key=f"{key}_label")
        transcription = st.text_input("Transcription", key=f"{key}_tr")
        add = st.form_submit_button("Add segment")
    if add:
        try:
            updated = audio_utils.add_segment(segments, start, end, label or "", transcription)
        except ValueError as e:
            st.warning(str(e))
        else:
            if len(updated) == len(segments):
                st.warning("Segment discarded: end must be after start.")
            segments = updated

    removed: Optional[str] = None
    duration = max((s.end_time for s in segments), default=0.0)
    for s in segments:
        left, width = audio_utils.timeline_share(s, duration)
        color = next((lb.color for lb in wb["labels"] if lb.name == s.label), "#64748b")
        c1, c2, c3 = st.columns([2, 6, 1])
        c1.write(f"{audio_utils.format_time(s.start_time)}–{audio_utils.format_time(s.end_time)}")
        c2.markdown(
            f"<div class='seg-track'><div class='seg' style='left:{left:.1f}%;width:{max(width, 1):.1f}%;background:{color}'></div></div>"
            f"<span>{s.label}</span> <span class='muted'>{s.transcription}</span>",
            unsafe_allow_html=True,
        )
        if c3.button("✕", key=f"{key}_rm_{s.id}"):
            removed = s.id
        with st.expander("Edit", expanded=False):
            options = label_names if s.label in label_names else [s.label, *label_names]
            new_label = st.selectbox("Label", options, index=options.index(s.label), key=f"{key}_el_{s.id}")
            new_tr = st.text_input("Transcription", value=s.transcription, key=f"{key}_et_{s.id}")
            if (new_label, new_tr) != (s.label, s.transcription):
                segments = audio_utils.edit_segment(segments, s.id, label=new_label, transcription=new_tr)
    current = audio_utils.segments_value(segments)
    if removed is not None:
        return audio_utils.remove_from_value(current, removed), True
    return current, False


def _render_row(client, dataset: Dataset, wb: dict[str, Any]) -> None:
    tasks: list[au.Task] = wb["tasks"]
    index = wb["index"]
    task = tasks[index]
    meta_fields, anno_fields = au.split_fields(wb["fields"])

    row = task.metadata
    if not row and task.csv_info is None:
        fetched = merged_rows.get_row(client, dataset.id, task.row_index)
        if fetched is not None:
            row = dict(fetched.data or {})
            tasks[index] = au.Task(task.row_index, task.status, row, fetched.csv_info)
            task = tasks[index]

    # image bytes are only held for the row on screen
    row_urls = [
        url
        for f in anno_fields
        if f.field_type == "image"
        for url in image_utils.parse_image_urls(row.get(f.csv_column_name) or row.get(f.field_name))
    ]
    image_utils.prune_cache(wb["image_bytes"], row_urls)

    start = wb["edits"].get(task.row_index) or au.initial_values(anno_fields, row)
    hist = _history(wb, task.row_index, start)
    ver = wb["form_ver"]

    left, right = st.columns([2, 3])
    with left:
        st.subheader("Metadata")
        ui_utils.render_kv_table(row, [f.csv_column_name for f in meta_fields if f.is_visible])
        if task.csv_info is not None and task.csv_info.file_name:
            st.caption(f"From {task.csv_info.file_name}, row {task.csv_info.original_csv_row_index + 1}")

    values = dict(start)
    refresh = False
    with right:
        st.subheader("Annotation")
        for f in anno_fields:
            key = f"wb_{dataset.id}_{task.row_index}_{ver}_{f.field_name}"
            if f.instructions:
                st.caption(f.instructions)
            column = au.new_column_for(f, wb["new_columns"])
            if column is not None:
                values[f.field_name] = _render_new_column_input(f, column, start.get(f.field_name, ""), key)
            elif f.field_type == "image":
                _render_images(client, dataset, wb, task, f, key)
            elif f.field_type == "audio":
                values[f.field_name], removed = _render_audio(wb, task, f, start.get(f.field_name, ""), key)
                refresh = refresh or removed
            elif f.field_type == "number":
                label = f.label + (" *" if f.is_required else "")
                text = st.text_input(label, value=start.get(f.field_name, ""), key=key)
                values[f.field_name] = text if au.is_number_input(text) else start.get(f.field_name, "")
            else:
                label = f.label + (" *" if f.is_required else "")
                values[f.field_name] = st.text_area(label, value=start.get(f.field_name, ""), key=key)

    if values != start:
        wb["edits"][task.row_index] = values
        hist.push(values)
    if refresh:
        # removed segments must disappear from the list drawn above
        st.rerun()

    c1, c2, c3, c4, c5 = st.columns(5)
    if c1.button("⟲ Undo", disabled=not hist.can_undo, use_container_width=True):
        wb["edits"][task.row_index] = hist.undo()
        wb["form_ver"] += 1
        st.rerun()
    if c2.button("⟳ Redo", disabled=not hist.can_redo, use_container_width=True):
        wb["edits"][task.row_index] = hist.redo()
        wb["form_ver"] += 1
        st.rerun()
    if c3.button("◀ Previous", disabled=index == 0, use_container_width=True):
        _go_to(client, dataset, wb, index - 1)
    if c4.button("Next ▶", disabled=index >= len(tasks) - 1, use_container_width=True):
        _go_to(client, dataset, wb, index + 1)
    if c5.button("✔ Save & complete", type="primary", use_container_width=True):
        value_fields = [f for f in anno_fields if f.field_type != "image" or au.new_column_for(f, wb["new_columns"])]
        _complete(client, dataset, wb, value_fields, values)


def _complete(client, dataset: Dataset, wb: dict[str, Any], anno_fields: list[AnnotationField], values: dict[str, str]) -> None:
    missing = au.missing_required(anno_fields, values)
    if missing:
        st.warning(f"Please fill in required field(s): {', '.join(missing)}")
        return
    try:
        with st.spinner("Saving..."):
            outcome = au.save_and_complete(client, dataset.id, wb["tasks"], wb["index"], anno_fields, values)
    except ApiError as e:
        ui_utils.toast_error("Saving row", e)
        return
    row_index = wb["tasks"][wb["index"]].row_index
    wb["tasks"] = outcome.tasks
    wb["edits"].pop(row_index, None)
    wb["history"].pop(row_index, None)
    wb["outcome"] = outcome
    ui_utils.flash(outcome.message)
    if not outcome.all_completed and outcome.next_index >= 0:
        wb["index"] = outcome.next_index
        wb["form_ver"] += 1
    st.rerun()


def _render_summary(dataset: Dataset, wb: dict[str, Any]) -> None:
    outcome: au.CompletionOutcome = wb["outcome"]
    st.balloons()
    st.success("🎉 All rows in this dataset are annotated.")
    status = outcome.status
    if status is not None:
        c1, c2 = st.columns(2)
        c1.metric("Completed rows", f"{status.completed_count:,}")
        c2.metric("Total rows", f"{status.total_count:,}")
    c1, c2 = st.columns(2)
    if c1.button("Review rows", use_container_width=True):
        wb["outcome"] = None
        st.rerun()
    if c2.button("Go to data overview", type="primary", use_container_width=True):
        st.switch_page("pages/04_Data_Overview.py")


def _render_sidebar(client, dataset: Dataset, wb: dict[str, Any]) -> None:
    tasks: list[au.Task] = wb["tasks"]
    done = au.completed_count(tasks)
    st.sidebar.header(dataset.name)
    st.sidebar.progress(done / len(tasks) if tasks else 0.0, text=f"{done:,} / {len(tasks):,} rows completed")
    jump = st.sidebar.selectbox(
        "Go to row",
        options=list(range(len(tasks))),
        index=wb["index"],
        format_func=lambda i: f"{'✅' if tasks[i].completed else '⬜'} {tasks[i].title}",
        key=f"wb_jump_{dataset.id}_{wb['form_ver']}",
    )
    if jump != wb["index"]:
        _go_to(client, dataset, wb, jump)
    if st.sidebar.button("Reload from server", use_container_width=True):
        reset_workbench(dataset.id)
        st.rerun()


def main() -> None:
    ensure_state()
    st.title("Annotation")

    if require_login() is None:
        return
    ui_utils.show_flashes()

    dataset_id = get_dataset_id()
    if not dataset_id:
        st.info("Pick a dataset on the **Datasets** page first.")
        return

    client = get_api_client()
    wb = get_workbench(dataset_id)
    try:
        dataset = datasets_api.get_dataset(client, dataset_id)
        with st.spinner("Loading rows..."):
            ready = _load(client, dataset, wb)
    except ApiError as e:
        ui_utils.toast_error("Loading workbench", e)
        st.error(f"Could not load the annotation workbench: {e}")
        return
    if not ready:
        st.warning("This dataset has no field configuration yet.")
        if st.button("Configure fields"):
            st.switch_page("pages/05_Field_Config.py")
        return
    if not wb["tasks"]:
        st.info("This dataset has no rows to annotate. Upload a file first.")
        return

    _render_sidebar(client, dataset, wb)
    outcome = wb.get("outcome")
    if outcome is not None and outcome.all_completed:
        _render_summary(dataset, wb)
        return

    task = wb["tasks"][wb["index"]]
    st.caption(f"{task.title} · {'completed ✅' if task.completed else 'pending'} · {wb['index'] + 1} of {len(wb['tasks'])}")
    try:
        _render_row(client, dataset, wb)
    except ApiError as e:
        ui_utils.toast_error("Loading row", e)
        st.error(f"Could not load row {task.row_index}: {e}")


if __name__ == "__main__":
    main()
