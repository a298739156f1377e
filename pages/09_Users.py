from __future__ import annotations

import pandas as pd
import streamlit as st

st.set_page_config(page_title="Users - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from annostudio import dataset_utils, ui_utils
from annostudio.api import users as users_api
from annostudio.config import get_settings
from annostudio.exceptions import ApiError
from annostudio.state import KEYS, ensure_state, get_api_client, require_login

ui_utils.load_app_style()


def main() -> None:
    ensure_state()
    st.title("Users")

    user = require_login()
    if user is None:
        return
    if not user.is_admin:
        st.warning("Only administrators can view the user list.")
        return

    try:
        with st.spinner("Loading users..."):
            users = users_api.list_users(get_api_client())
    except ApiError as e:
        ui_utils.toast_error("Loading users", e)
        st.error(f"Could not load users: {e}")
        return

    query = st.text_input("Search", value=st.session_state.get(KEYS.user_query, ""), placeholder="Name, email or role")
    if query != st.session_state.get(KEYS.user_query, ""):
        st.session_state[KEYS.user_query] = query
        st.session_state[KEYS.user_page] = 1
    matches = dataset_utils.filter_users(users, query)

    c1, c2, c3 = st.columns(3)
    c1.metric("Users", f"{len(users):,}")
    c2.metric("Admins", f"{sum(1 for u in users if u.is_admin):,}")
    c3.metric("Active", f"{sum(1 for u in users if u.is_active):,}")

    if not matches:
        st.info("No users match your search.")
        return

    per_page = get_settings().USERS_PER_PAGE
    n_pages = dataset_utils.total_pages(len(matches), per_page)
    page = dataset_utils.clamp_page(st.session_state.get(KEYS.user_page, 1), n_pages)
    rows = [
        {
            "Name": u.full_name,
            "Email": u.email,
            "Role": u.role,
            "Active": u.is_active,
            "Provider": u.auth_provider,
            "Joined": dataset_utils.format_date(u.created_at),
        }
        for u in dataset_utils.page_slice(matches, page, per_page)
    ]
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    st.caption(f"{len(matches):,} user(s) · page {page} of {n_pages}")

    new_page = ui_utils.render_pagination(page, n_pages, key="users")
    if new_page != page:
        st.session_state[KEYS.user_page] = new_page
        st.rerun()


if __name__ == "__main__":
    main()
