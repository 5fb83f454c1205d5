"""Codec seam between domain values and wire bytes.

The client never builds frames by hand: every request body, subscription
frame and response goes through a Codec. JsonCodec is the default and
serializes the pydantic models in protocol.models as compact JSON.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..errors import CodecError

if TYPE_CHECKING:
    from .crypto import KeyPair

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class Codec(Protocol):
    """Protocol for value codecs.

    Implementations must provide:
    - encode: value -> bytes
    - decode: bytes + expected type -> value (raise CodecError on failure)
    - sign: payload + key pair -> hex signature over encode(payload)
    """

    content_type: str

    def encode(self, value: Any) -> bytes:
        """Encode a value to bytes."""
        ...

    def decode(self, data: bytes, schema: Any) -> Any:
        """Decode bytes into a value of the given type."""
        ...

    def sign(self, payload: Any, key_pair: KeyPair) -> str:
        """Sign the encoded payload."""
        ...


class JsonCodec:
    """JSON codec backed by pydantic."""

    content_type = "application/json"

    def __init__(self) -> None:
        # Keyed by id(): Annotated unions are not reliably hashable
        self._adapters: dict[int, tuple[Any, TypeAdapter[Any]]] = {}

    def _adapter(self, schema: Any) -> TypeAdapter[Any]:
        entry = self._adapters.get(id(schema))
        if entry is None:
            entry = (schema, TypeAdapter(schema))
            self._adapters[id(schema)] = entry
        return entry[1]

    def encode(self, value: Any) -> bytes:
        if isinstance(value, BaseModel):
            return value.model_dump_json().encode("utf-8")
        return self._adapter(Any).dump_json(value)

    def decode(self, data: bytes | str, schema: type[T] | Any) -> T:
        try:
            return self._adapter(schema).validate_json(data)
        except ValidationError as e:
            logger.debug(f"Failed to decode {_schema_name(schema)} ({len(data)} bytes)")
            raise CodecError(f"Cannot decode {_schema_name(schema)}: {e}") from e

    def sign(self, payload: Any, key_pair: KeyPair) -> str:
        return key_pair.sign(self.encode(payload)).hex()


def _schema_name(schema: Any) -> str:
    return getattr(schema, "__name__", None) or repr(schema)
