from __future__ import annotations

from datetime import timedelta

import streamlit as st

from core.config import Settings
from core.db import get_conn, ensure_schema
from core.errors import PermissionDenied
from core.log import configure_logging
from core.services.permissions import ROLES, is_allowed, load_overrides, require
from core.services.report_cache import ReportCache

ROLE_KEY = "resto_recon_role"
USER_KEY = "resto_recon_user"
CACHE_KEY = "resto_recon_report_cache"


def open_db(settings: Settings):
    configure_logging(settings.log_level)
    conn = get_conn(settings.db_path)
    ensure_schema(conn)
    return conn


def current_role() -> str:
    return st.session_state.get(ROLE_KEY, "staff")


def current_user() -> str:
    return st.session_state.get(USER_KEY, "") or "Unknown User"


def identity_sidebar() -> None:
    # Login is handled outside this app; the sidebar only records who is working.
    with st.sidebar:
        st.subheader("Signed in as")
        st.session_state[USER_KEY] = st.text_input("Name", value=st.session_state.get(USER_KEY, ""))
        role = current_role()
        st.session_state[ROLE_KEY] = st.selectbox("Role", options=list(ROLES), index=list(ROLES).index(role))


def guard(conn, resource: str, action: str = "view") -> None:
    """Stop rendering the page when the current role may not see it."""
    try:
        require(current_role(), resource, action, load_overrides(conn))
    except PermissionDenied as e:
        st.error(str(e))
        st.stop()


def can(conn, resource: str, action: str) -> bool:
    return is_allowed(current_role(), resource, action, load_overrides(conn))


def report_cache(settings: Settings) -> ReportCache:
    if CACHE_KEY not in st.session_state:
        st.session_state[CACHE_KEY] = ReportCache(max_age=timedelta(days=settings.cache_max_age_days))
    return st.session_state[CACHE_KEY]
