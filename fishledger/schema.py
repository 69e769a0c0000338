SCHEMA_SQL = r"""
-- Stocked product variants (one row per species + size)
CREATE TABLE IF NOT EXISTS inventory (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  specie TEXT,
  size TEXT,                              -- display label, e.g. "1kg"
  category TEXT,
  cost_price_per_kg REAL NOT NULL DEFAULT 0,
  selling_price_per_kg REAL NOT NULL DEFAULT 0,

  stock_quantity_kg REAL NOT NULL DEFAULT 0,   -- current, mutated by sales
  total_pieces INTEGER NOT NULL DEFAULT 0,     -- current, mutated by sales
  total_pieces_supplied INTEGER NOT NULL DEFAULT 0,
  total_kg_supplied REAL NOT NULL DEFAULT 0,

  minimum_stock_kg REAL NOT NULL DEFAULT 0,    -- reorder threshold
  barcode TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Supply deliveries (each one increments inventory)
CREATE TABLE IF NOT EXISTS stock_updates (
  id TEXT PRIMARY KEY,
  inventory_id TEXT NOT NULL,
  quantity_added_kg REAL NOT NULL,
  pieces_added INTEGER NOT NULL DEFAULT 0,
  driver_name TEXT,
  update_date TEXT NOT NULL,              -- ISO date
  created_at TEXT NOT NULL,
  FOREIGN KEY (inventory_id) REFERENCES inventory(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS customers (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  phone TEXT,
  email TEXT,
  address TEXT,
  credit_limit REAL NOT NULL DEFAULT 0,
  notes TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Sale headers
CREATE TABLE IF NOT EXISTS sales (
  id TEXT PRIMARY KEY,
  customer_id TEXT,                       -- NULL = walk-in
  payment_method TEXT NOT NULL DEFAULT 'cash',   -- cash / card / transfer / credit
  status TEXT NOT NULL DEFAULT 'completed',      -- pending / completed / cancelled
  total_amount REAL NOT NULL DEFAULT 0,
  amount_paid REAL NOT NULL DEFAULT 0,
  discount REAL NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,               -- user-settable backdate
  updated_at TEXT NOT NULL,
  FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE SET NULL
);

-- Sale lines. product_id is not a foreign key: an unknown
-- product is reported by the ledger, not by the database.
CREATE TABLE IF NOT EXISTS sale_items (
  id TEXT PRIMARY KEY,
  sale_id TEXT NOT NULL,
  product_id TEXT NOT NULL,
  quantity REAL NOT NULL,                 -- kg
  unit_price REAL NOT NULL,
  total_price REAL NOT NULL,
  pieces_sold INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  FOREIGN KEY (sale_id) REFERENCES sales(id) ON DELETE CASCADE
);

-- Money in/out journal
CREATE TABLE IF NOT EXISTS payments (
  id TEXT PRIMARY KEY,
  type TEXT NOT NULL,                     -- income / expense
  amount REAL NOT NULL,
  description TEXT,
  category TEXT,
  payment_method TEXT NOT NULL DEFAULT 'cash',
  reference_id TEXT,
  reference_type TEXT,                    -- e.g. 'sale'
  created_at TEXT NOT NULL
);

-- Business running costs (fuel, ice, wages, ...)
CREATE TABLE IF NOT EXISTS expenses (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  description TEXT,
  category TEXT,
  amount REAL NOT NULL,
  payment_method TEXT NOT NULL DEFAULT 'cash',
  expense_date TEXT NOT NULL,             -- ISO date
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sale_items_sale ON sale_items(sale_id);
CREATE INDEX IF NOT EXISTS idx_sale_items_product ON sale_items(product_id);
CREATE INDEX IF NOT EXISTS idx_stock_updates_item ON stock_updates(inventory_id);
CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(expense_date);
"""

# Additive migrations for databases created by older builds:
# (table, column, column DDL)
COLUMN_MIGRATIONS = [
    ("inventory", "total_kg_supplied", "REAL NOT NULL DEFAULT 0"),
    ("inventory", "specie", "TEXT"),
    ("sales", "amount_paid", "REAL NOT NULL DEFAULT 0"),
    ("sale_items", "pieces_sold", "INTEGER NOT NULL DEFAULT 0"),
]
