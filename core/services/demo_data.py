from __future__ import annotations

import random
from datetime import date, datetime, time, timedelta

from core.db import q, ensure_schema
from core.services.ledger import lock_movements, record_movement
from core.services.production import record_production_run, set_recipe_line
from core.services.reference import add_branch, add_product
from core.services.stock import record_esb, upsert_ready
from core.services.tolerances import set_tolerance


DEFAULT_BRANCHES = [("SBY", "Surabaya"), ("MLG", "Malang"), ("JKT", "Jakarta")]
DEFAULT_PRODUCTS = [
    # name, sub_category, unit
    ("Salmon Fillet", "Seafood", "gr"),
    ("Badan Salmon WIP", "Seafood", "gr"),
    ("Nasi Putih", "Carbo", "gr"),
    ("Saus Teriyaki", "Sauce", "ml"),
    ("Salmon Teriyaki Bowl", "Menu", "pcs"),
]
DEFAULT_RECIPES = [
    # product, component, gramasi per unit
    ("Salmon Teriyaki Bowl", "Salmon Fillet", 120),
    ("Salmon Teriyaki Bowl", "Nasi Putih", 200),
    ("Salmon Teriyaki Bowl", "Saus Teriyaki", 30),
]

TABLES = [
    "investigation_notes", "audit_log", "role_permissions", "product_tolerances",
    "produksi_detail", "produksi", "recipes", "esb_harian", "ready", "gudang",
    "products", "branches",
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)

    for code, name in DEFAULT_BRANCHES:
        add_branch(conn, code=code, name=name)

    for name, sub_category, unit in DEFAULT_PRODUCTS:
        add_product(conn, name=name, sub_category=sub_category, unit=unit)


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    for t in TABLES:
        conn.execute(f"DELETE FROM {t};")
    conn.commit()


def load_demo_data(conn, *, seed: int = 7, days: int = 7) -> None:
    random.seed(seed)
    upsert_reference_data(conn)

    branches = q(conn, "SELECT * FROM branches ORDER BY id")
    products = {r["name"]: int(r["id"]) for r in q(conn, "SELECT id, name FROM products")}

    for product, component, gramasi in DEFAULT_RECIPES:
        set_recipe_line(conn, product_id=products[product], item_id=products[component], grams_per_unit=gramasi)

    set_tolerance(conn, product_id=products["Salmon Fillet"], percentage=3, user_name="demo")
    set_tolerance(conn, product_id=products["Nasi Putih"], percentage=8, user_name="demo")

    raw_items = ["Salmon Fillet", "Nasi Putih", "Saus Teriyaki"]
    start = date.today() - timedelta(days=days)

    for br in branches:
        on_hand = {name: random.randint(3000, 6000) for name in raw_items}
        for i in range(days):
            d = start + timedelta(days=i)

            bowls = random.randint(10, 25)
            record_production_run(
                conn, product_id=products["Salmon Teriyaki Bowl"], branch=br["name"], day=d, quantity_produced=bowls
            )

            for name in raw_items:
                pid = products[name]
                received = random.choice([0, 0, 1000, 2000])
                if received:
                    record_movement(
                        conn,
                        product_id=pid,
                        branch_code=br["code"],
                        timestamp=datetime.combine(d, time(8, random.randint(0, 59))),
                        quantity_in=received,
                        taker="Gudang Demo",
                        user_name="demo",
                    )
                sold = random.randint(300, 900)
                waste = random.choice([0, 0, 10, 25])
                on_hand[name] = max(0, on_hand[name] + received - sold - waste)

                upsert_ready(conn, product_id=pid, branch_id=int(br["id"]), day=d, on_hand=on_hand[name], waste=waste)
                # ESB figure drifts a little from what actually left the shelf
                record_esb(conn, day=d, product_id=pid, branch=br["name"], quantity=round(sold * random.uniform(0.93, 1.06), 1))

        # Freeze the first half of the period as if a stock count had been done
        for name in raw_items:
            lock_movements(
                conn,
                product_id=products[name],
                branch_code=br["code"],
                up_to=datetime.combine(start + timedelta(days=days // 2), time(23, 59, 59)),
                locked_by=f"SO-{br['code']}-DEMO",
            )
