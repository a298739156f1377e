from __future__ import annotations

import logging
import os
import pandas as pd
import streamlit as st
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from annostudio.dataset_utils import ELLIPSIS, visible_pages
from annostudio.exceptions import AuthExpiredError, StudioError

logger = logging.getLogger(__name__)

TYPE_ICONS = {"text": "📝", "image": "🖼️", "audio": "🎧", "multimodal": "🧩"}
ACCESS_ICONS = {"private": "🔒", "public": "🌐", "shared": "👥"}


def load_css(path: str) -> None:
    if not path or not os.path.exists(path):
        return
    try:
        with open(path, "r", encoding="utf-8") as f:
            css = f.read()
        st.markdown(f"<style>{css}</style>", unsafe_allow_html=True)
    except OSError as e:
        logger.warning("Could not load stylesheet %s: %s", path, e)


def load_app_style() -> None:
    """
    Load global CSS under repo root `assets/style.css`.

    Important: Call this AFTER `st.set_page_config(...)` in each page.
    """
    root = Path(__file__).resolve().parents[1]
    load_css(str(root / "assets" / "style.css"))


def render_warnings(warnings: list[str]) -> None:
    for w in warnings:
        st.warning(w)


def render_errors(errors: list[str]) -> None:
    for e in errors:
        st.error(e)


def toast_error(action: str, exc: BaseException) -> None:
    """Surface a failed call the way every screen does: a toast, plus a log line."""
    logger.warning("%s failed: %s", action, exc)
    if isinstance(exc, AuthExpiredError):
        st.toast("Your session has expired. Please log in again.", icon="🔑")
        return
    msg = str(exc) if isinstance(exc, StudioError) else f"Unexpected error: {exc}"
    st.toast(f"{action} failed: {msg}", icon="⚠️")


def flash(message: str, icon: str = "✅") -> None:
    """Toast that survives the next ``st.rerun()``."""
    st.session_state.setdefault("_flash", []).append((message, icon))


def show_flashes() -> None:
    for message, icon in st.session_state.pop("_flash", []):
        st.toast(message, icon=icon)


def type_badge(dataset_type: Optional[str]) -> str:
    t = dataset_type or "text"
    return f"{TYPE_ICONS.get(t, '📄')} {t}"


def access_badge(access_type: Optional[str]) -> str:
    a = access_type or "private"
    return f"{ACCESS_ICONS.get(a, '🔒')} {a}"


def render_pagination(page: int, n_pages: int, *, key: str) -> int:
    """Numbered page buttons with prev/next; returns the selected 1-based page."""
    if n_pages <= 1:
        return 1
    tokens = visible_pages(page, n_pages)
    cols = st.columns(len(tokens) + 2)
    new_page = page
    if cols[0].button("‹", key=f"{key}_prev", disabled=page <= 1, use_container_width=True):
        new_page = page - 1
    for c, tok in zip(cols[1:-1], tokens):
        if tok == ELLIPSIS:
            c.markdown("<div class='page-gap'>…</div>", unsafe_allow_html=True)
            continue
        kind = "primary" if tok == page else "secondary"
        if c.button(str(tok), key=f"{key}_p{tok}", type=kind, use_container_width=True):
            new_page = int(tok)
    if cols[-1].button("›", key=f"{key}_next", disabled=page >= n_pages, use_container_width=True):
        new_page = page + 1
    return new_page


def render_image_grid(
    images: list[dict[str, Any]],
    *,
    loader: Callable[[str], Optional[bytes]],
    ncols: int = 4,
    on_select: Optional[Callable[[int], None]] = None,
    on_retry: Optional[Callable[[str], None]] = None,
    key: str = "grid",
) -> None:
    """
    Thumbnails with caption, selection and retry controls.

    ``images`` items carry ``url``, ``caption`` and ``is_selected``; ``loader`` returns the
    image bytes or None once the URL has failed.
    """
    if not images:
        st.info("No images for this row.")
        return
    ncols = int(max(1, ncols))
    for i in range(0, len(images), ncols):
        cols = st.columns(ncols)
        for c, (j, img) in zip(cols, enumerate(images[i : i + ncols], start=i)):
            url = img.get("url", "")
            with c:
                data = loader(url)
                if data is not None:
                    st.image(data, caption=img.get("caption") or None, use_container_width=True)
                else:
                    st.markdown("<div class='img-failed'>Image failed to load</div>", unsafe_allow_html=True)
                    st.caption(url)
                    if on_retry is not None and st.button("Retry", key=f"{key}_retry_{j}"):
                        on_retry(url)
                if on_select is not None:
                    label = "✓ Selected" if img.get("is_selected") else "Select"
                    if st.button(label, key=f"{key}_sel_{j}", use_container_width=True):
                        on_select(j)


def render_kv_table(row: dict[str, Any], columns: Iterable[str]) -> None:
    """Read-only metadata panel as a two-column table."""
    items = [(c, row.get(c, "")) for c in columns]
    if not items:
        st.caption("No metadata fields configured.")
        return
    df = pd.DataFrame(items, columns=["Field", "Value"])
    df["Value"] = df["Value"].map(lambda v: "" if v is None else str(v))
    st.dataframe(df, use_container_width=True, hide_index=True)
