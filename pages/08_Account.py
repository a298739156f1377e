from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Account - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from pydantic import ValidationError

from annostudio import dataset_utils, ui_utils
from annostudio.api import users as users_api
from annostudio.exceptions import ApiError
from annostudio.schemas import MIN_PASSWORD_LENGTH, PasswordChangeForm, ProfileForm, form_errors
from annostudio.state import KEYS, ensure_state, get_api_client, require_login

ui_utils.load_app_style()


def _render_profile(client, user) -> None:
    st.subheader("Profile")
    with st.form("profile_form"):
        c1, c2 = st.columns(2)
        first = c1.text_input("First name", value=user.first_name)
        last = c2.text_input("Last name", value=user.last_name)
        email = st.text_input("Email", value=user.email, disabled=user.auth_provider != "local")
        submitted = st.form_submit_button("Update profile", type="primary")
    st.caption(f"Role: `{user.role}` · member since {dataset_utils.format_date(user.created_at)}")
    if not submitted:
        return
    try:
        form = ProfileForm(first_name=first, last_name=last, email=email or None)
    except ValidationError as e:
        ui_utils.render_errors(form_errors(e))
        return
    try:
        updated = users_api.update_profile(client, form.to_payload())
    except ApiError as e:
        ui_utils.toast_error("Updating profile", e)
        return
    # the profile endpoint may omit fields it did not change
    st.session_state[KEYS.user] = user.model_copy(
        update={k: v for k, v in updated.model_dump().items() if v not in (None, "")}
    )
    ui_utils.flash("Profile updated")
    st.rerun()


def _render_password(client, user) -> None:
    st.subheader("Password")
    if user.auth_provider != "local":
        st.caption(f"Signed in with {user.auth_provider}; the password is managed there.")
        return
    with st.form("password_form", clear_on_submit=True):
        new = st.text_input("New password", type="password", help=f"At least {MIN_PASSWORD_LENGTH} characters")
        confirm = st.text_input("Confirm new password", type="password")
        submitted = st.form_submit_button("Change password")
    if not submitted:
        return
    try:
        form = PasswordChangeForm(new_password=new, confirm_password=confirm)
    except ValidationError as e:
        ui_utils.render_errors(form_errors(e))
        return
    try:
        users_api.change_password(client, form.to_payload())
    except ApiError as e:
        ui_utils.toast_error("Changing password", e)
        return
    st.toast("Password changed", icon="🔑")


def main() -> None:
    ensure_state()
    st.title("Account")

    user = require_login()
    if user is None:
        return
    ui_utils.show_flashes()
    client = get_api_client()
    try:
        fresh = users_api.get_profile(client)
    except ApiError as e:
        ui_utils.toast_error("Loading profile", e)
    else:
        if fresh.id:
            user = fresh
            st.session_state[KEYS.user] = fresh

    left, right = st.columns(2)
    with left:
        _render_profile(client, user)
    with right:
        _render_password(client, user)


if __name__ == "__main__":
    main()
