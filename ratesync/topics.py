"""Topics shared by the hub and its clients, and the frames that carry them.

A frame is a single text message ``{"event": "<topic>", "data": <payload>}``.
The payload shape is fixed by the topic: updates and creates always carry the
complete record, deletes carry only ``{"id": ...}``.
"""
from enum import Enum
from typing import Annotated, Any, Callable, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .schemas import Product, ProductRef, Rate


class Topic(str, Enum):
    RATE_UPDATED = "RATE_UPDATED"
    PRODUCT_CREATED = "PRODUCT_CREATED"
    PRODUCT_UPDATED = "PRODUCT_UPDATED"
    PRODUCT_DELETED = "PRODUCT_DELETED"

    @property
    def entity(self) -> str:
        return self.value.rsplit("_", 1)[0]

    @property
    def action(self) -> str:
        return self.value.rsplit("_", 1)[1]


class RateUpdated(BaseModel):
    event: Literal["RATE_UPDATED"]
    data: Rate


class ProductCreated(BaseModel):
    event: Literal["PRODUCT_CREATED"]
    data: Product


class ProductUpdated(BaseModel):
    event: Literal["PRODUCT_UPDATED"]
    data: Product


class ProductDeleted(BaseModel):
    event: Literal["PRODUCT_DELETED"]
    data: ProductRef


Envelope = Annotated[
    Union[RateUpdated, ProductCreated, ProductUpdated, ProductDeleted],
    Field(discriminator="event"),
]

_envelope = TypeAdapter(Envelope)


class MalformedEnvelope(ValueError):
    pass


def make_envelope(topic, payload) -> Envelope:
    """Build a typed envelope; ``payload`` may be a record or a plain dict."""
    try:
        return _envelope.validate_python({"event": Topic(topic).value, "data": payload})
    except (ValueError, ValidationError) as e:
        raise MalformedEnvelope(f"payload does not match {topic}: {e}") from e


def encode_envelope(topic, payload) -> str:
    env = make_envelope(topic, payload)
    return _envelope.dump_json(env, by_alias=True).decode("utf-8")


def decode_envelope(text: str | bytes) -> Envelope:
    try:
        return _envelope.validate_json(text)
    except ValidationError as e:
        raise MalformedEnvelope(str(e)) from e


Handler = Callable[[Any], None]


class TopicRegistry:
    """topic -> handlers, in registration order.

    Registering the same callable twice yields two independent entries; each
    removal closure only drops its own entry.
    """

    def __init__(self):
        self._handlers: dict[Topic, list[tuple[object, Handler]]] = {}

    def add(self, topic, handler: Handler) -> Callable[[], None]:
        topic = Topic(topic)
        token = object()
        self._handlers.setdefault(topic, []).append((token, handler))

        def remove():
            entries = self._handlers.get(topic)
            if not entries:
                return
            entries[:] = [e for e in entries if e[0] is not token]
            if not entries:
                del self._handlers[topic]

        return remove

    def handlers(self, topic) -> list[Handler]:
        return [h for _, h in self._handlers.get(Topic(topic), ())]

    def topics(self) -> set[Topic]:
        return set(self._handlers)

    def __contains__(self, topic) -> bool:
        return topic in self._handlers
