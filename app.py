from __future__ import annotations

import streamlit as st
from pydantic import ValidationError

from annostudio import ui_utils
from annostudio.api import auth
from annostudio.exceptions import ApiError
from annostudio.schemas import LoginForm, form_errors
from annostudio.state import KEYS, clear_session, ensure_state, get_api_client, get_user, set_session


def _render_login() -> None:
    st.subheader("Sign in")
    notice = st.session_state.get(KEYS.auth_notice, "")
    if notice:
        st.warning(notice)

    with st.form("login_form"):
        email = st.text_input("Email", placeholder="you@example.com")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary", use_container_width=True)

    if not submitted:
        return
    try:
        form = LoginForm(email=email, password=password)
    except ValidationError as e:
        ui_utils.render_errors(form_errors(e))
        return

    try:
        with st.spinner("Signing in..."):
            result = auth.login(get_api_client(), form.email, form.password)
    except ApiError as e:
        st.error(f"Login failed: {e.message}")
        return
    if not result.access_token:
        st.error("Login failed: the server did not return a token.")
        return
    set_session(result.access_token, result.user)
    ui_utils.flash(f"Welcome back, {result.user.full_name}!")
    st.rerun()


def _render_home() -> None:
    user = get_user()
    c1, c2 = st.columns([4, 1])
    with c1:
        st.markdown(f"Signed in as **{user.full_name}** · `{user.email}` · role: `{user.role}`")
    with c2:
        if st.button("Log out", use_container_width=True):
            clear_session()
            st.rerun()

    st.markdown("### 🚀 Navigation")
    col1, col2, col3 = st.columns(3)
    with col1:
        st.info("**01 Dashboard**\n\nTotals, recent datasets, activity feed and dataset types")
        st.info("**02 Datasets**\n\nSearch, browse, create and delete datasets")
        st.info("**03 Upload**\n\nPreview CSV/Excel files, validate headers and upload")
    with col2:
        st.info("**04 Data Overview**\n\nImports of a dataset, field-config status and exports")
        st.info("**05 Field Config**\n\nMetadata vs. annotation fields, primary key, labels, new columns")
        st.info("**06 Annotation**\n\nRow-by-row workbench for text, image and audio annotation")
    with col3:
        st.info("**07 Settings**\n\nName, access type, sharing and image credentials")
        st.info("**08 Account**\n\nProfile and password")
        if user.is_admin:
            st.info("**09 Users**\n\nAll registered users (admin)")


def main() -> None:
    st.set_page_config(page_title="Annotation Studio", layout="wide", initial_sidebar_state="expanded")
    ensure_state()
    ui_utils.load_app_style()
    ui_utils.show_flashes()

    st.title("Annotation Studio")
    st.caption("Upload datasets, configure fields and annotate rows of text, images and audio.")

    if get_user() is None or not st.session_state.get(KEYS.token):
        _render_login()
    else:
        _render_home()


if __name__ == "__main__":
    main()
