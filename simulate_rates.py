import os
import random
import time

import httpx

API_URL = os.getenv("RATESYNC_API_URL", "http://127.0.0.1:8000")

RATES = [
    {"type": "नंबर 99.99 Gold", "category": "gold", "base": 91700, "noise": 150},
    {"type": "ब्रैंड 99.50 Gold", "category": "gold", "base": 91250, "noise": 150},
    {"type": "चांदी बट्टिया [99.99]", "category": "silver", "base": 102300, "noise": 400},
]

PUBLISH_EVERY_SEC = 3


def make_value(base, noise):
    return int(round(base + (random.random() - 0.5) * 2 * noise))


def main():
    client = httpx.Client(base_url=API_URL, timeout=10)
    print(f"Posting rate updates to {API_URL}")

    try:
        while True:
            for r in RATES:
                body = {"type": r["type"], "category": r["category"], "current": make_value(r["base"], r["noise"])}
                try:
                    resp = client.post("/api/rates/update", json=body)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    print(f"POST failed: {e}")
                    continue
                print(f"RATE {r['type']} -> {body['current']}")
            time.sleep(PUBLISH_EVERY_SEC)
    except KeyboardInterrupt:
        pass
    finally:
        client.close()


if __name__ == "__main__":
    main()
