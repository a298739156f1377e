from __future__ import annotations

import streamlit as st
from typing import Any

st.set_page_config(page_title="Settings - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from pydantic import ValidationError

from annostudio import dataset_utils, ui_utils
from annostudio.api import datasets as datasets_api
from annostudio.api import users as users_api
from annostudio.api.image_proxy import has_auth_configured
from annostudio.exceptions import ApiError
from annostudio.models import ACCESS_TYPES, DATASET_TYPES, Dataset, SharedUser, User
from annostudio.schemas import UpdateDatasetForm, form_errors
from annostudio.state import ensure_state, get_api_client, get_dataset_id, get_workbench, require_login

ui_utils.load_app_style()

_DRAFT_KEY = "settings_draft"  # dict: dataset_id -> {"access": str, "shared": list[SharedUser], "confirmed": bool}

_ACCESS_HELP = {
    "private": "Only you (and admins) can see this dataset.",
    "public": "Every signed-in user can see and annotate this dataset.",
    "shared": "Only the users you add below can see and annotate this dataset.",
}


def _draft(dataset: Dataset) -> dict[str, Any]:
    drafts: dict = st.session_state.setdefault(_DRAFT_KEY, {})
    if dataset.id not in drafts:
        drafts[dataset.id] = {
            "access": dataset.access_type or "private",
            "shared": list(dataset.shared_with),
            "confirmed": False,
        }
    return drafts[dataset.id]


def _render_access(dataset: Dataset, draft: dict[str, Any]) -> None:
    st.subheader("Access")
    current = dataset.access_type or "private"
    choice = st.radio(
        "Who can access this dataset?",
        ACCESS_TYPES,
        index=ACCESS_TYPES.index(draft["access"]),
        format_func=ui_utils.access_badge,
        horizontal=True,
        key=f"access_{dataset.id}",
    )
    st.caption(_ACCESS_HELP[choice])
    if choice != draft["access"]:
        draft["access"] = choice
        draft["confirmed"] = False
    if choice != current and not draft["confirmed"]:
        st.warning(f"Access will change from **{current}** to **{choice}** when you save.")
        if st.button("Confirm access change", key=f"confirm_access_{dataset.id}"):
            draft["confirmed"] = True
            st.rerun()


def _render_sharing(client, dataset: Dataset, user: User, draft: dict[str, Any]) -> None:
    if draft["access"] != "shared":
        return
    st.subheader("Shared with")
    shared: list[SharedUser] = draft["shared"]
    if not shared:
        st.caption("Nobody yet.")
    for s in shared:
        c1, c2 = st.columns([5, 1])
        c1.write(s.email or s.user_id)
        if c2.button("Remove", key=f"unshare_{s.user_id}"):
            draft["shared"] = dataset_utils.remove_shared_user(shared, s.user_id)
            st.rerun()

    try:
        all_users = users_api.list_users(client)
    except ApiError as e:
        st.caption(f"User directory unavailable: {e}")
        return
    candidates = dataset_utils.shareable_users(all_users, shared, current_user_id=user.id, owner_id=dataset.owner_id)
    if not candidates:
        st.caption("No other users to share with.")
        return
    c1, c2 = st.columns([5, 1])
    pick = c1.selectbox(
        "Add user",
        options=[u.id for u in candidates],
        index=None,
        placeholder="Select a user",
        format_func=lambda i: next(f"{u.full_name} <{u.email}>" for u in candidates if u.id == i),
    )
    if c2.button("Add", disabled=pick is None):
        target = next(u for u in candidates if u.id == pick)
        draft["shared"] = dataset_utils.add_shared_user(shared, target)
        st.rerun()


def _render_image_auth(dataset: Dataset) -> dict[str, Any]:
    st.subheader("Image access")
    st.caption("Credentials the server uses to fetch images that are behind basic authentication.")
    cfg = dataset.image_auth_config
    is_private = st.checkbox("Images require authentication", value=bool(cfg and cfg.is_private))
    c1, c2 = st.columns(2)
    username = c1.text_input("Username", value=(cfg.username if cfg else "") or "", disabled=not is_private)
    password = c2.text_input("Password", value=(cfg.password if cfg else "") or "", type="password", disabled=not is_private)
    if has_auth_configured(cfg):
        st.caption("✅ Image proxy enabled for this dataset.")
    return {"isPrivate": is_private, "username": username if is_private else "", "password": password if is_private else ""}


def main() -> None:
    ensure_state()
    st.title("Dataset Settings")

    user = require_login()
    if user is None:
        return
    ui_utils.show_flashes()

    dataset_id = get_dataset_id()
    if not dataset_id:
        st.info("Pick a dataset on the **Datasets** page first.")
        return

    client = get_api_client()
    try:
        dataset = datasets_api.get_dataset(client, dataset_id)
    except ApiError as e:
        ui_utils.toast_error("Loading dataset", e)
        st.error(f"Could not load dataset: {e}")
        return
    if not (user.is_admin or dataset.owner_id == user.id):
        st.warning("Only the dataset owner or an admin can change these settings.")
        return

    draft = _draft(dataset)
    st.subheader("General")
    name = st.text_input("Name", value=dataset.name, max_chars=100)
    description = st.text_area("Description", value=dataset.description or "", max_chars=500)
    types = list(DATASET_TYPES)
    dataset_type = st.selectbox(
        "Dataset type", types, index=types.index(dataset.dataset_type) if dataset.dataset_type in types else 0
    )

    st.divider()
    _render_access(dataset, draft)
    _render_sharing(client, dataset, user, draft)
    st.divider()
    image_auth = _render_image_auth(dataset)
    st.divider()

    access_pending = draft["access"] != (dataset.access_type or "private") and not draft["confirmed"]
    if st.button("Save settings", type="primary", disabled=access_pending):
        try:
            form = UpdateDatasetForm(name=name, description=description, dataset_type=dataset_type, access_type=draft["access"])
        except ValidationError as e:
            ui_utils.render_errors(form_errors(e))
            return
        payload = datasets_api.build_update_payload(
            name=form.name,
            description=form.description,
            dataset_type=form.dataset_type,
            access_type=form.access_type,
            shared_with=[s.to_payload() for s in draft["shared"]],
            image_auth=image_auth,
        )
        try:
            datasets_api.update_dataset(client, dataset.id, payload)
        except ApiError as e:
            ui_utils.toast_error("Saving settings", e)
            return
        st.session_state[_DRAFT_KEY].pop(dataset.id, None)
        # cached image bytes were fetched with the old credentials
        wb = get_workbench(dataset.id)
        if "image_bytes" in wb:
            wb["image_bytes"] = {}
        ui_utils.flash("Settings saved")
        st.rerun()
    if access_pending:
        st.caption("Confirm the access change before saving.")


if __name__ == "__main__":
    main()
