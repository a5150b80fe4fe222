from __future__ import annotations

from typing import Optional

from core.db import q, x
from core.entities import Branch, Product
from core.normalize import branch_from_row, product_from_row


def add_branch(conn, *, code: str, name: str) -> int:
    code = str(code).strip().upper()
    name = str(name).strip()
    if not code or not name:
        raise ValueError("Branch code and name are required.")
    x(conn, "INSERT OR IGNORE INTO branches (code, name) VALUES (?, ?)", (code, name))
    return int(q(conn, "SELECT id FROM branches WHERE code=?", (code,))[0]["id"])


def add_product(conn, *, name: str, sub_category: str = "Unknown", unit: str = "") -> int:
    name = str(name).strip()
    if not name:
        raise ValueError("Product name is required.")
    x(
        conn,
        "INSERT OR IGNORE INTO products (name, sub_category, unit) VALUES (?, ?, ?)",
        (name, str(sub_category).strip() or "Unknown", str(unit).strip()),
    )
    return int(q(conn, "SELECT id FROM products WHERE name=?", (name,))[0]["id"])


def list_branches(conn) -> list[Branch]:
    return [branch_from_row(r) for r in q(conn, "SELECT * FROM branches ORDER BY name")]


def list_products(conn, sub_category: Optional[str] = None) -> list[Product]:
    if sub_category:
        rows = q(conn, "SELECT * FROM products WHERE sub_category=? ORDER BY name", (sub_category,))
    else:
        rows = q(conn, "SELECT * FROM products ORDER BY sub_category, name")
    return [product_from_row(r) for r in rows]
