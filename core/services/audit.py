from __future__ import annotations

import json
import logging
from typing import Any, Optional

from core.db import q, x
from core.utils import iso_now

logger = logging.getLogger(__name__)

ACTIONS = ("INSERT", "UPDATE", "DELETE")


def _encode(values: Optional[dict]) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(values, default=str, sort_keys=True)


def log_audit(
    conn,
    *,
    table_name: str,
    record_id: int,
    action: str,
    user_name: Optional[str] = None,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
) -> int:
    """
    Append-only audit trail. Rows are never updated or deleted.
    """
    if action not in ACTIONS:
        raise ValueError(f"Invalid audit action {action!r}. Use one of {', '.join(ACTIONS)}.")

    audit_id = x(
        conn,
        """
        INSERT INTO audit_log (table_name, record_id, action, user_name, old_values, new_values, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            table_name,
            int(record_id),
            action,
            (user_name or "").strip() or "Unknown User",
            _encode(old_values),
            _encode(new_values),
            iso_now(),
        ),
    )
    logger.debug("audit %s %s#%s by %s", action, table_name, record_id, user_name)
    return audit_id


def list_audit(conn, *, table_name: Optional[str] = None, limit: int = 200) -> list[dict[str, Any]]:
    where = "WHERE table_name = ?" if table_name else ""
    params: tuple = (table_name, int(limit)) if table_name else (int(limit),)
    rows = q(
        conn,
        f"""
        SELECT id, table_name, record_id, action, user_name, old_values, new_values, created_at
        FROM audit_log
        {where}
        ORDER BY id DESC
        LIMIT ?
        """,
        params,
    )
    out: list[dict[str, Any]] = []
    for r in rows:
        d = dict(r)
        d["old_values"] = json.loads(d["old_values"]) if d["old_values"] else None
        d["new_values"] = json.loads(d["new_values"]) if d["new_values"] else None
        out.append(d)
    return out
