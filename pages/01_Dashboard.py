from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Dashboard - Annotation Studio", layout="wide", initial_sidebar_state="expanded")

from annostudio import dataset_utils, plot_utils, ui_utils
from annostudio.api import dashboard
from annostudio.api import datasets as datasets_api
from annostudio.exceptions import ApiError
from annostudio.state import ensure_state, get_api_client, require_login, set_dataset_id

ui_utils.load_app_style()


def _render_stats(stats: dashboard.DashboardStats) -> None:
    c1, c2, c3 = st.columns(3)
    c1.metric("Datasets", f"{stats.total_datasets:,}")
    c2.metric("Annotations", f"{stats.total_annotations:,}")
    c3.metric("Completion rate", f"{stats.completion_rate:.0f}%")


def _render_recent(datasets) -> None:
    st.subheader("Recent datasets")
    recent = dataset_utils.recent_datasets(datasets, limit=5)
    if not recent:
        st.info("No datasets yet. Create one on the **Datasets** page.")
        return
    for d in recent:
        c1, c2, c3 = st.columns([4, 2, 1])
        with c1:
            st.markdown(f"**{d.name}**")
            if d.description:
                st.caption(d.description)
        c2.write(f"{ui_utils.type_badge(d.dataset_type)} · {dataset_utils.format_date(d.created_at)}")
        if c3.button("Open", key=f"recent_{d.id}", use_container_width=True):
            set_dataset_id(d.id)
            st.switch_page("pages/04_Data_Overview.py")


def _render_activity(datasets) -> None:
    st.subheader("Activity")
    feed = dataset_utils.activity_feed(datasets, limit=20)
    if not feed:
        st.caption("No activity yet.")
        return
    for item in feed:
        st.markdown(
            f"- **{item.title}** · {item.description} "
            f"<span class='muted'>({dataset_utils.format_date(item.timestamp, '%b %d, %Y %H:%M')})</span>",
            unsafe_allow_html=True,
        )


def main() -> None:
    ensure_state()
    st.title("Dashboard")
    st.caption("Overview of your datasets and recent activity.")

    if require_login() is None:
        return

    client = get_api_client()
    try:
        with st.spinner("Loading datasets..."):
            datasets = datasets_api.list_datasets(client)
    except ApiError as e:
        ui_utils.toast_error("Loading datasets", e)
        st.error(f"Could not load dashboard data: {e}")
        return

    _render_stats(dashboard.get_stats(client, datasets))
    st.divider()

    left, right = st.columns([3, 2])
    with left:
        _render_recent(datasets)
        st.plotly_chart(plot_utils.plot_dataset_types(dataset_utils.type_counts(datasets)), use_container_width=True)
    with right:
        _render_activity(datasets)


if __name__ == "__main__":
    main()
