from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Resto Stock Reconciliation", page_icon="🍱", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_📦_Gudang.py", title="Gudang (Warehouse Ledger)", icon="📦"),
    st.Page("pages/2_🧊_Ready_Stock.py", title="Ready Stock", icon="🧊"),
    st.Page("pages/3_🧾_ESB.py", title="ESB Sales", icon="🧾"),
    st.Page("pages/4_🏭_Produksi.py", title="Produksi & Recipes", icon="🏭"),
    st.Page("pages/5_⚙️_Product_Settings.py", title="Product Tolerances", icon="⚙️"),
    st.Page("pages/6_📊_Analysis.py", title="Analysis (Selisih)", icon="📊"),
    st.Page("pages/7_🧮_Pivot.py", title="Pivot & Investigation", icon="🧮"),
    st.Page("pages/8_🕵️_Audit_Log.py", title="Audit Log", icon="🕵️"),
    st.Page("pages/9_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
