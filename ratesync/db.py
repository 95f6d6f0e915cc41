import os
import sqlite3
from datetime import datetime, timezone

from . import config

DEFAULT_RATES = [
    # type, current, high, low, icon, category
    ("नंबर 99.99 Gold", 91700, 92000, 91650, "cube", "gold"),
    ("ब्रैंड 99.50 Gold", 91250, 91550, 91200, "chevron-up", "gold"),
    ("चांदी बट्टिया [99.99]", 102300, 102300, 101100, "coin", "silver"),
    ("RTGS(9999) inc GST", 92245, 92425, 92025, "calculator", "gold"),
]

DEFAULT_COLLECTIONS = [
    # name, description, image_url, featured
    ("Wedding Collection", "Exclusive designs for your special day",
     "https://images.unsplash.com/photo-1611652022419-a9419f74343d?w=500", 1),
    ("Traditional Gold", "Timeless designs inspired by culture",
     "https://images.unsplash.com/photo-1601121141461-9d6647bca1ed?w=500", 1),
    ("Diamond Jewelry", "Elegant pieces with premium diamonds",
     "https://images.unsplash.com/photo-1619119712072-f22d10d4dd5c?w=500", 1),
    ("Silver Collection", "Modern silver designs for daily wear",
     "https://images.unsplash.com/photo-1602173574767-37ac01994b2a?w=500", 1),
    ("Bridal Sets", "Complete sets for the perfect bridal look",
     "https://images.unsplash.com/photo-1569154941061-e231b4725ef1?w=500", 0),
    ("Men's Collection", "Elegant jewelry designs for men",
     "https://images.unsplash.com/photo-1536243298747-ea8874136d64?w=500", 0),
]

_PRODUCT_FIELDS = ("name", "description", "price", "category", "image_url", "collection_id", "in_stock")


def _db_path() -> str:
    return os.getenv("DB_PATH", config.DB_PATH)


def _conn():
    path = _db_path()
    if os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
    con = sqlite3.connect(path)
    con.execute("PRAGMA journal_mode=WAL;")
    con.execute("PRAGMA synchronous=NORMAL;")
    con.execute("PRAGMA foreign_keys=ON;")
    con.row_factory = sqlite3.Row
    return con


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db():
    con = _conn()
    cur = con.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS rates (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      type TEXT NOT NULL UNIQUE,
      current INTEGER NOT NULL,
      high INTEGER NOT NULL,
      low INTEGER NOT NULL,
      icon TEXT NOT NULL,
      category TEXT NOT NULL,
      updated_at TEXT NOT NULL
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS collections (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      description TEXT,
      image_url TEXT NOT NULL,
      featured INTEGER DEFAULT 0,
      created_at TEXT NOT NULL
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS products (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      description TEXT,
      price REAL DEFAULT 0,
      category TEXT NOT NULL,
      image_url TEXT NOT NULL,
      collection_id INTEGER NOT NULL,
      in_stock INTEGER DEFAULT 1,
      created_at TEXT NOT NULL,
      FOREIGN KEY(collection_id) REFERENCES collections(id)
    );
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_products_collection ON products(collection_id);")

    # Seed only an empty store
    now = _now()
    if not cur.execute("SELECT 1 FROM rates LIMIT 1").fetchone():
        cur.executemany(
            "INSERT INTO rates(type, current, high, low, icon, category, updated_at) VALUES(?,?,?,?,?,?,?)",
            [r + (now,) for r in DEFAULT_RATES],
        )
    if not cur.execute("SELECT 1 FROM collections LIMIT 1").fetchone():
        cur.executemany(
            "INSERT INTO collections(name, description, image_url, featured, created_at) VALUES(?,?,?,?,?)",
            [c + (now,) for c in DEFAULT_COLLECTIONS],
        )

    con.commit()
    con.close()


def _rate(row) -> dict:
    return {
        "id": row["id"],
        "type": row["type"],
        "current": row["current"],
        "high": row["high"],
        "low": row["low"],
        "icon": row["icon"],
        "category": row["category"],
        "updatedAt": row["updated_at"],
    }


def _collection(row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "description": row["description"],
        "imageUrl": row["image_url"],
        "featured": row["featured"],
        "createdAt": row["created_at"],
    }


def _product(row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "description": row["description"],
        "price": row["price"],
        "category": row["category"],
        "imageUrl": row["image_url"],
        "collectionId": row["collection_id"],
        "inStock": bool(row["in_stock"]),
        "createdAt": row["created_at"],
    }


# -----------------------------
# Rates
# -----------------------------
def list_rates():
    con = _conn()
    rows = con.execute("SELECT * FROM rates ORDER BY id").fetchall()
    con.close()
    return [_rate(r) for r in rows]


def get_rate(rate_id: int):
    con = _conn()
    row = con.execute("SELECT * FROM rates WHERE id = ?", (rate_id,)).fetchone()
    con.close()
    return _rate(row) if row else None


def update_rate_by_type(type_: str, current: int, category: str) -> tuple[dict, bool]:
    """
    Sets the current price of the rate named ``type_``.
    - high/low widen to include the new current, they never shrink.
    - An unknown type creates the rate (high = low = current).
    Returns (rate, created).
    """
    con = _conn()
    now = _now()
    row = con.execute("SELECT * FROM rates WHERE type = ?", (type_,)).fetchone()

    if row is None:
        icon = "cube" if category == "gold" else "coin"
        cur = con.execute(
            "INSERT INTO rates(type, current, high, low, icon, category, updated_at) VALUES(?,?,?,?,?,?,?)",
            (type_, current, current, current, icon, category, now),
        )
        rate_id, created = cur.lastrowid, True
    else:
        con.execute(
            "UPDATE rates SET current = ?, high = ?, low = ?, category = ?, updated_at = ? WHERE id = ?",
            (current, max(current, row["high"]), min(current, row["low"]), category, now, row["id"]),
        )
        rate_id, created = row["id"], False

    con.commit()
    row = con.execute("SELECT * FROM rates WHERE id = ?", (rate_id,)).fetchone()
    con.close()
    return _rate(row), created


# -----------------------------
# Collections
# -----------------------------
def list_collections():
    con = _conn()
    rows = con.execute("SELECT * FROM collections ORDER BY id").fetchall()
    con.close()
    return [_collection(r) for r in rows]


def get_collection(collection_id: int):
    con = _conn()
    row = con.execute("SELECT * FROM collections WHERE id = ?", (collection_id,)).fetchone()
    con.close()
    return _collection(row) if row else None


# -----------------------------
# Products
# -----------------------------
def list_products(collection_id: int | None = None):
    con = _conn()
    if collection_id is None:
        rows = con.execute("SELECT * FROM products ORDER BY id").fetchall()
    else:
        rows = con.execute(
            "SELECT * FROM products WHERE collection_id = ? ORDER BY id", (collection_id,)
        ).fetchall()
    con.close()
    return [_product(r) for r in rows]


def get_product(product_id: int):
    con = _conn()
    row = con.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
    con.close()
    return _product(row) if row else None


def create_product(fields: dict) -> dict:
    con = _conn()
    cur = con.execute("""
      INSERT INTO products(name, description, price, category, image_url, collection_id, in_stock, created_at)
      VALUES(?,?,?,?,?,?,?,?)
    """, (
        fields["name"],
        fields.get("description"),
        fields.get("price", 0),
        fields["category"],
        fields["image_url"],
        fields["collection_id"],
        1 if fields.get("in_stock", True) else 0,
        _now(),
    ))
    con.commit()
    row = con.execute("SELECT * FROM products WHERE id = ?", (cur.lastrowid,)).fetchone()
    con.close()
    return _product(row)


def update_product(product_id: int, fields: dict):
    """Partial update; unknown keys are ignored. None if the product is gone."""
    sets = {k: v for k, v in fields.items() if k in _PRODUCT_FIELDS}
    if "in_stock" in sets:
        sets["in_stock"] = 1 if sets["in_stock"] else 0

    con = _conn()
    if sets:
        assignments = ", ".join(f"{col} = ?" for col in sets)
        con.execute(f"UPDATE products SET {assignments} WHERE id = ?", (*sets.values(), product_id))
        con.commit()
    row = con.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
    con.close()
    return _product(row) if row else None


def delete_product(product_id: int) -> bool:
    con = _conn()
    cur = con.execute("DELETE FROM products WHERE id = ?", (product_id,))
    con.commit()
    con.close()
    return cur.rowcount > 0
