from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import streamlit as st

from annostudio.api.base import ApiClient
from annostudio.api.image_proxy import has_auth_configured
from annostudio.config import configure_logging, get_settings
from annostudio.image_utils import ImageLoadTracker
from annostudio.models import Dataset, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionKeys:
    # Auth
    token: str = "token"
    user: str = "user"
    auth_notice: str = "auth_notice"

    # Dataset context
    dataset_id: str = "dataset_id"
    field_config_rev: str = "field_config_rev"  # dict: dataset_id -> revision
    image_trackers: str = "image_trackers"  # dict: dataset_id -> ImageLoadTracker

    # Dataset list
    search_query: str = "search_query"
    dataset_page: str = "dataset_page"
    pending_delete: str = "pending_delete"

    # Workbench (per dataset, see workbench_key)
    workbench: str = "workbench"

    # Users list
    user_query: str = "user_query"
    user_page: str = "user_page"


KEYS = SessionKeys()


def ensure_state() -> None:
    """Initialize logging and Streamlit session_state keys safely (idempotent)."""
    configure_logging()
    defaults: dict[str, Any] = {
        KEYS.token: None,
        KEYS.user: None,
        KEYS.auth_notice: "",
        KEYS.dataset_id: None,
        KEYS.field_config_rev: {},
        KEYS.image_trackers: {},
        KEYS.search_query: "",
        KEYS.dataset_page: 1,
        KEYS.pending_delete: None,
        KEYS.workbench: {},
        KEYS.user_query: "",
        KEYS.user_page: 1,
    }
    for k, v in defaults.items():
        if k not in st.session_state:
            st.session_state[k] = v


# ── Auth ───────────────────────────────────────────────────


def get_token() -> Optional[str]:
    return st.session_state.get(KEYS.token)


def get_user() -> Optional[User]:
    return st.session_state.get(KEYS.user)


def is_logged_in() -> bool:
    return bool(get_token())


def set_session(token: str, user: User) -> None:
    st.session_state[KEYS.token] = token
    st.session_state[KEYS.user] = user
    st.session_state[KEYS.auth_notice] = ""


def clear_session(notice: str = "") -> None:
    """Drop the token and every cached per-user structure."""
    st.session_state[KEYS.token] = None
    st.session_state[KEYS.user] = None
    st.session_state[KEYS.auth_notice] = notice
    st.session_state[KEYS.dataset_id] = None
    st.session_state[KEYS.field_config_rev] = {}
    st.session_state[KEYS.image_trackers] = {}
    st.session_state[KEYS.workbench] = {}
    st.session_state[KEYS.pending_delete] = None


def _on_auth_expired() -> None:
    logger.info("Session token rejected by the backend; logging out")
    clear_session("Your session has expired. Please log in again.")


def get_api_client() -> ApiClient:
    return ApiClient(token=get_token(), on_auth_expired=_on_auth_expired)


def require_login() -> Optional[User]:
    user = get_user()
    if not is_logged_in() or user is None:
        st.info("Please log in on the **app** page first.")
        return None
    return user


# ── Dataset context ────────────────────────────────────────


def get_dataset_id() -> Optional[str]:
    return st.session_state.get(KEYS.dataset_id)


def set_dataset_id(dataset_id: Optional[str]) -> None:
    st.session_state[KEYS.dataset_id] = dataset_id


def bump_field_config_rev(dataset_id: str) -> int:
    revs = st.session_state.setdefault(KEYS.field_config_rev, {})
    revs[dataset_id] = int(revs.get(dataset_id, 0)) + 1
    # a new config invalidates any open workbench for the dataset
    st.session_state.get(KEYS.workbench, {}).pop(dataset_id, None)
    return revs[dataset_id]


def get_field_config_rev(dataset_id: str) -> int:
    return int(st.session_state.get(KEYS.field_config_rev, {}).get(dataset_id, 0))


def get_image_tracker(dataset: Dataset) -> ImageLoadTracker:
    """One tracker per dataset; rebuilt when the dataset's image auth settings change."""
    trackers: dict[str, ImageLoadTracker] = st.session_state.setdefault(KEYS.image_trackers, {})
    auth = has_auth_configured(dataset.image_auth_config)
    version = dataset.updated_at
    tr = trackers.get(dataset.id)
    if tr is None or tr.auth_configured != auth or tr.cache_version != version:
        tr = ImageLoadTracker(
            dataset_id=dataset.id,
            api_base=get_settings().api_base,
            auth_configured=auth,
            cache_version=version,
        )
        trackers[dataset.id] = tr
    return tr


def get_workbench(dataset_id: str) -> dict[str, Any]:
    return st.session_state.setdefault(KEYS.workbench, {}).setdefault(dataset_id, {})


def reset_workbench(dataset_id: str) -> None:
    st.session_state.setdefault(KEYS.workbench, {}).pop(dataset_id, None)
