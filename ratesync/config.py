import os

DB_PATH = os.getenv("DB_PATH", "/data/ratesync.db")

# Where storefront clients reach the server
API_URL = os.getenv("RATESYNC_API_URL", "http://127.0.0.1:8000")
WS_URL = os.getenv("RATESYNC_WS_URL", "ws://127.0.0.1:8000/ws")

# Reconnect backoff (seconds)
RECONNECT_FLOOR_S = float(os.getenv("RECONNECT_FLOOR_S", "2"))
RECONNECT_FACTOR = float(os.getenv("RECONNECT_FACTOR", "1.5"))
RECONNECT_CEILING_S = float(os.getenv("RECONNECT_CEILING_S", "30"))
