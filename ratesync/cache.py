"""Client-side query cache kept current by pushed envelopes.

Every envelope is applied as a whole-record replace keyed by id, so applying
the same envelope twice, or missing one, never corrupts the collection; the
next envelope or refetch for that id corrects it.
"""
import logging
from functools import partial
from typing import Any, Callable, Iterable

from .topics import Topic

log = logging.getLogger(__name__)

RATES_KEY = "/api/rates"
PRODUCTS_KEY = "/api/products"

ENTITY_KEYS = {
    "RATE": RATES_KEY,
    "PRODUCT": PRODUCTS_KEY,
}


def entity_id(entity):
    return entity["id"] if isinstance(entity, dict) else entity.id


def reconcile(items: Iterable | None, topic, payload) -> list:
    """Return a new collection with ``payload`` applied under ``topic``.

    - UPDATED: replace the entity with the same id, append it if missing.
    - CREATED: append unless the id is already present (the cached one stays).
    - DELETED: drop the id if present.
    """
    topic = Topic(topic)
    out = list(items or ())
    pid = entity_id(payload)
    idx = next((i for i, e in enumerate(out) if entity_id(e) == pid), None)

    if topic.action == "DELETED":
        if idx is not None:
            del out[idx]
    elif topic.action == "CREATED":
        if idx is None:
            out.append(payload)
    elif idx is None:
        out.append(payload)
    else:
        out[idx] = payload
    return out


class QueryCache:
    """key -> collection. ``set_query_data`` is the only write path."""

    def __init__(self):
        self._data: dict[str, Any] = {}
        self._listeners: dict[str, list[tuple[object, Callable[[Any], None]]]] = {}

    def get_query_data(self, key: str):
        return self._data.get(key)

    def set_query_data(self, key: str, updater):
        """``updater`` is either the new value or a function of the old one."""
        value = updater(self._data.get(key)) if callable(updater) else updater
        self._data[key] = value
        for _, listener in list(self._listeners.get(key, ())):
            try:
                listener(value)
            except Exception:
                log.exception(f"cache listener for {key} failed")
        return value

    def listen(self, key: str, listener: Callable[[Any], None]) -> Callable[[], None]:
        token = object()
        self._listeners.setdefault(key, []).append((token, listener))

        def remove():
            listeners = self._listeners.get(key, [])
            listeners[:] = [e for e in listeners if e[0] is not token]

        return remove


def _apply(cache: QueryCache, key: str, topic: Topic, payload):
    cache.set_query_data(key, lambda old: reconcile(old, topic, payload))


def bind(subscriber, cache: QueryCache, entity: str) -> Callable[[], None]:
    """Subscribe the reconciler to every topic of ``entity``; returns one unbind."""
    key = ENTITY_KEYS[entity]
    unsubscribes = [
        subscriber.subscribe(topic, partial(_apply, cache, key, topic))
        for topic in Topic
        if topic.entity == entity
    ]

    def unbind():
        for unsubscribe in unsubscribes:
            unsubscribe()

    return unbind


def bind_rates(subscriber, cache: QueryCache) -> Callable[[], None]:
    return bind(subscriber, cache, "RATE")


def bind_products(subscriber, cache: QueryCache) -> Callable[[], None]:
    return bind(subscriber, cache, "PRODUCT")
