from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from core.db import q, x
from core.utils import iso_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvestigationNote:
    id: int
    target_result_id: str
    free_text: str
    author: str
    timestamp: str


def add_note(conn, *, target_result_id: str, free_text: str, author: str) -> InvestigationNote:
    """Append a note to a discrepancy row. Notes are never edited or removed."""
    text = str(free_text).strip()
    if not text:
        raise ValueError("Note text is required.")
    author = str(author).strip()
    if not author:
        raise ValueError("Author is required.")

    ts = iso_now()
    note_id = x(
        conn,
        "INSERT INTO investigation_notes (target_result_id, free_text, author, created_at) VALUES (?, ?, ?, ?)",
        (str(target_result_id), text, author, ts),
    )
    logger.info("Investigation note %s on %s by %s", note_id, target_result_id, author)
    return InvestigationNote(id=note_id, target_result_id=str(target_result_id), free_text=text, author=author, timestamp=ts)


def list_notes(conn, target_result_id: Optional[str] = None) -> list[InvestigationNote]:
    if target_result_id is None:
        rows = q(conn, "SELECT * FROM investigation_notes ORDER BY id ASC")
    else:
        rows = q(
            conn,
            "SELECT * FROM investigation_notes WHERE target_result_id=? ORDER BY id ASC",
            (str(target_result_id),),
        )
    return [
        InvestigationNote(
            id=int(r["id"]),
            target_result_id=str(r["target_result_id"]),
            free_text=str(r["free_text"]),
            author=str(r["author"]),
            timestamp=str(r["created_at"]),
        )
        for r in rows
    ]


def notes_by_target(conn) -> dict[str, list[InvestigationNote]]:
    out: dict[str, list[InvestigationNote]] = {}
    for n in list_notes(conn):
        out.setdefault(n.target_result_id, []).append(n)
    return out
