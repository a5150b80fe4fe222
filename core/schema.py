SCHEMA_SQL = r"""
-- Branches (gudang.cabang stores the code, esb/produksi_detail store the name)
CREATE TABLE IF NOT EXISTS branches (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  code TEXT NOT NULL UNIQUE,
  name TEXT NOT NULL UNIQUE
);

-- Products (raw materials, WIP and finished goods)
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  sub_category TEXT NOT NULL DEFAULT 'Unknown',
  unit TEXT NOT NULL DEFAULT ''
);

-- Warehouse ledger: one row per in/out movement, running_total maintained per product+branch
CREATE TABLE IF NOT EXISTS gudang (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  product_id INTEGER NOT NULL,
  cabang TEXT NOT NULL,                  -- branch code
  tanggal TEXT NOT NULL,                 -- ISO datetime (business time)
  jumlah_masuk REAL NOT NULL DEFAULT 0,
  jumlah_keluar REAL NOT NULL DEFAULT 0,
  running_total REAL NOT NULL DEFAULT 0,
  nama_pengambil_barang TEXT,
  source_type TEXT NOT NULL DEFAULT 'manual',   -- manual / PO / stock_opname_batch / transfer
  source_reference TEXT,
  is_locked INTEGER NOT NULL DEFAULT 0,
  locked_by TEXT,
  locked_at TEXT,
  created_by TEXT,
  FOREIGN KEY (product_id) REFERENCES products(id)
);
CREATE INDEX IF NOT EXISTS idx_gudang_key ON gudang(product_id, cabang, tanggal);

-- Ready stock: one snapshot per product/branch/day
CREATE TABLE IF NOT EXISTS ready (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  product_id INTEGER NOT NULL,
  branch_id INTEGER NOT NULL,
  tanggal_input TEXT NOT NULL,           -- ISO date
  ready REAL NOT NULL DEFAULT 0,
  waste REAL NOT NULL DEFAULT 0,
  UNIQUE (product_id, branch_id, tanggal_input),
  FOREIGN KEY (product_id) REFERENCES products(id),
  FOREIGN KEY (branch_id) REFERENCES branches(id)
);

-- Point-of-sale (ESB) daily consumption
CREATE TABLE IF NOT EXISTS esb_harian (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sales_date TEXT NOT NULL,              -- ISO date
  product_id INTEGER NOT NULL,
  branch TEXT NOT NULL,                  -- branch name
  qty_total REAL NOT NULL DEFAULT 0,
  UNIQUE (sales_date, product_id, branch),
  FOREIGN KEY (product_id) REFERENCES products(id)
);

-- Recipes (bill of materials)
CREATE TABLE IF NOT EXISTS recipes (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  product_id INTEGER NOT NULL,
  item_id INTEGER NOT NULL,
  gramasi REAL NOT NULL,
  UNIQUE (product_id, item_id),
  FOREIGN KEY (product_id) REFERENCES products(id),
  FOREIGN KEY (item_id) REFERENCES products(id)
);

-- Production runs
CREATE TABLE IF NOT EXISTS produksi (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  product_id INTEGER NOT NULL,
  branch TEXT NOT NULL,                  -- branch name
  tanggal_input TEXT NOT NULL,           -- ISO date
  jumlah_buat REAL NOT NULL,
  konversi REAL NOT NULL DEFAULT 1,
  total_konversi REAL NOT NULL,
  FOREIGN KEY (product_id) REFERENCES products(id)
);

-- Component usage per production run (recipe x jumlah_buat)
CREATE TABLE IF NOT EXISTS produksi_detail (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  produksi_id INTEGER NOT NULL,
  item_id INTEGER NOT NULL,
  branch TEXT NOT NULL,
  tanggal_input TEXT NOT NULL,
  jumlah_buat REAL NOT NULL,
  gramasi REAL NOT NULL,
  total_pakai REAL NOT NULL,
  FOREIGN KEY (produksi_id) REFERENCES produksi(id) ON DELETE CASCADE,
  FOREIGN KEY (item_id) REFERENCES products(id)
);

-- Per-product tolerance band (% of ESB consumption)
CREATE TABLE IF NOT EXISTS product_tolerances (
  product_id INTEGER PRIMARY KEY,
  tolerance_percentage REAL NOT NULL DEFAULT 5,
  updated_at TEXT,
  FOREIGN KEY (product_id) REFERENCES products(id)
);

-- Investigation notes on negative discrepancies (append-only)
CREATE TABLE IF NOT EXISTS investigation_notes (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  target_result_id TEXT NOT NULL,        -- "<date>|<branch>|<product_id>"
  free_text TEXT NOT NULL,
  author TEXT NOT NULL,
  created_at TEXT NOT NULL
);

-- Audit trail (append-only)
CREATE TABLE IF NOT EXISTS audit_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  table_name TEXT NOT NULL,
  record_id INTEGER NOT NULL,
  action TEXT NOT NULL,                  -- INSERT / UPDATE / DELETE
  user_name TEXT NOT NULL,
  old_values TEXT,
  new_values TEXT,
  created_at TEXT NOT NULL
);

-- Role permission overrides (on top of the built-in matrix)
CREATE TABLE IF NOT EXISTS role_permissions (
  role TEXT NOT NULL,
  resource TEXT NOT NULL,
  action TEXT NOT NULL,
  allowed INTEGER NOT NULL,
  PRIMARY KEY (role, resource, action)
);
"""
