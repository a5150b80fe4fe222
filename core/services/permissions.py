"""
Role / resource / action authorization.

One decision function, ``is_allowed``, called once at the top of each page.
The built-in matrix mirrors the fallback roles of the old system; rows in
``role_permissions`` override single cells.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.db import q, x
from core.errors import PermissionDenied

logger = logging.getLogger(__name__)

ACTIONS = ("view", "create", "edit", "delete")

RESOURCES = (
    "ready",
    "gudang",
    "produksi",
    "recipes",
    "esb",
    "analysis",
    "pivot",
    "product_settings",
    "audit_log",
    "data_management",
)

_ALL = {"view": True, "create": True, "edit": True, "delete": True}
_NO_DELETE = {"view": True, "create": True, "edit": True, "delete": False}
_CREATE_ONLY = {"view": True, "create": True, "edit": False, "delete": False}
_READ_ONLY = {"view": True, "create": False, "edit": False, "delete": False}
_NONE = {"view": False, "create": False, "edit": False, "delete": False}

DEFAULT_MATRIX: dict[str, dict[str, dict[str, bool]]] = {
    "super admin": {r: _ALL for r in RESOURCES},
    "admin": {**{r: _ALL for r in RESOURCES}, "data_management": _READ_ONLY},
    "finance": {**{r: _READ_ONLY for r in RESOURCES}, "data_management": _NONE},
    "pic_branch": {
        **{r: _NO_DELETE for r in RESOURCES},
        "gudang": _READ_ONLY,
        "audit_log": _READ_ONLY,
        "data_management": _NONE,
    },
    "staff": {
        **{r: _READ_ONLY for r in RESOURCES},
        "ready": _CREATE_ONLY,
        "gudang": _CREATE_ONLY,
        "esb": _CREATE_ONLY,
        "produksi": _CREATE_ONLY,
        "audit_log": _NONE,
        "data_management": _NONE,
    },
}

ROLES = tuple(DEFAULT_MATRIX)

Overrides = dict[tuple[str, str, str], bool]


def _norm(s: str) -> str:
    return str(s or "").strip().lower()


def is_allowed(role: str, resource: str, action: str, overrides: Optional[Overrides] = None) -> bool:
    role, resource, action = _norm(role), _norm(resource), _norm(action)
    if action not in ACTIONS:
        return False
    if overrides and (role, resource, action) in overrides:
        return bool(overrides[(role, resource, action)])
    return DEFAULT_MATRIX.get(role, {}).get(resource, _NONE).get(action, False)


def require(role: str, resource: str, action: str, overrides: Optional[Overrides] = None) -> None:
    if not is_allowed(role, resource, action, overrides):
        logger.warning("Denied %s %s for role %s", action, resource, role)
        raise PermissionDenied(role, resource, action)


def load_overrides(conn) -> Overrides:
    rows = q(conn, "SELECT role, resource, action, allowed FROM role_permissions")
    return {(_norm(r["role"]), _norm(r["resource"]), _norm(r["action"])): bool(r["allowed"]) for r in rows}


def set_override(conn, *, role: str, resource: str, action: str, allowed: bool) -> None:
    action = _norm(action)
    if action not in ACTIONS:
        raise ValueError(f"Invalid action {action!r}. Use one of {', '.join(ACTIONS)}.")
    x(
        conn,
        """
        INSERT INTO role_permissions (role, resource, action, allowed) VALUES (?, ?, ?, ?)
        ON CONFLICT (role, resource, action) DO UPDATE SET allowed=excluded.allowed
        """,
        (_norm(role), _norm(resource), action, 1 if allowed else 0),
    )
