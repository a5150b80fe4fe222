from __future__ import annotations

import streamlit as st

from core.config import get_settings
from core.services.demo_data import upsert_reference_data
from core.session import identity_sidebar, open_db

st.title("🍱 Resto Stock Reconciliation")
st.caption(
    "Warehouse ledger, ready stock, ESB sales and production in one place, "
    "reconciled daily into a selisih per product and branch."
)

settings = get_settings()
conn = open_db(settings)
upsert_reference_data(conn)
identity_sidebar()

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    st.write(f"**Default tolerance:** {settings.default_tolerance_pct}%")

st.info(
    "Pick the **super admin** role in the sidebar and use **🧪 Data Management** to load demo data, then open **📊 Analysis** or **🧮 Pivot**. "
    "Daily inputs are entered in **Gudang**, **Ready Stock**, **ESB Sales** and **Produksi**.",
    icon="ℹ️",
)

st.markdown(
    """
**How the selisih is computed**

- *Keluar form* = (ready kemarin + gudang kemarin + barang masuk hari ini) − (ready hari ini + gudang hari ini + waste) + total konversi produksi
- *Selisih* = hasil ESB − keluar form + pemakaian sebagai bahan produksi
- Status is **OK** inside ± (ESB × toleransi %), otherwise **Kurang** (below) or **Lebih** (above).
"""
)
