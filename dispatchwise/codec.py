"""
json codecs of the command endpoints

- `CommandDecoder` reads a command payload into the variant named by the envelope,
  the payload itself carries no type information.
- `EventEncoder` writes events with a discriminator on every object, at any depth,
  so that clients can rebuild the concrete variants.
- `TaggedReader` is the reading side of `EventEncoder`.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import fields as dataclass_fields
from dataclasses import is_dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, get_args, get_origin, get_type_hints
from uuid import UUID

import msgspec
from msgspec import Struct

from .errors import CommandTypeMismatchError, UnknownTypeIdError
from .messages import (
    Command,
    Event,
    EventMetaData,
    EventWithMetaData,
    all_subclasses,
    type_id,
)

DEFAULT_DISCRIMINATOR = "@class"

PRIMITIVES = (
    str,
    int,
    float,
    bool,
    bytes,
    type(None),
    datetime,
    date,
    time,
    timedelta,
    UUID,
    Decimal,
    Enum,
)


class CommandDecoder:
    def __init__(self, command_base: type = Command):
        self._command_base = command_base
        self._decoders: dict[type, msgspec.json.Decoder[Any]] = {}

    def _decoder(self, command_type: type) -> msgspec.json.Decoder[Any]:
        try:
            return self._decoders[command_type]
        except KeyError:
            decoder = self._decoders[command_type] = msgspec.json.Decoder(command_type)
            return decoder

    def decode(self, payload: str | bytes, command_type: type) -> Any:
        """
        raises `msgspec.DecodeError` for malformed json,
        `msgspec.ValidationError` for missing fields or wrong field types,
        unknown fields are ignored.
        """
        command = self._decoder(command_type).decode(payload)
        if not isinstance(command, self._command_base):
            raise CommandTypeMismatchError(command, self._command_base)
        return command


class EventEncoder:
    def __init__(self, discriminator: str = DEFAULT_DISCRIMINATOR):
        self._discriminator = discriminator
        self._encoder = msgspec.json.Encoder()

    @property
    def discriminator(self) -> str:
        return self._discriminator

    def _tagged(self, cls: type, items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
        body: dict[str, Any] = {self._discriminator: type_id(cls)}
        for name, value in items:
            if value is msgspec.UNSET:
                continue
            body[name] = self.to_tagged(value)
        return body

    def to_tagged(self, value: Any) -> Any:
        if isinstance(value, PRIMITIVES):
            return value

        if isinstance(value, Struct):
            return self._tagged(
                type(value),
                ((name, getattr(value, name)) for name in value.__struct_fields__),
            )

        if is_dataclass(value) and not isinstance(value, type):
            return self._tagged(
                type(value),
                ((f.name, getattr(value, f.name)) for f in dataclass_fields(value)),
            )

        if isinstance(value, Mapping):
            return {k: self.to_tagged(v) for k, v in value.items()}

        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.to_tagged(v) for v in value]

        # left to msgspec, which raises for unsupported types
        return value

    def encode(self, record: Any) -> bytes:
        return self._encoder.encode(self.to_tagged(record))

    def encode_many(self, records: Iterable[Any]) -> bytes:
        "each record is encoded on its own, then joined into one json array"
        return b"[" + b",".join(self.encode(r) for r in records) + b"]"


def field_types(cls: type) -> dict[str, Any]:
    if issubclass(cls, Struct):
        return {f.name: f.type for f in msgspec.structs.fields(cls)}
    if is_dataclass(cls):
        hints = get_type_hints(cls)
        return {f.name: hints.get(f.name, Any) for f in dataclass_fields(cls)}
    return dict(get_type_hints(cls))


class TaggedReader:
    """
    Rebuilds values written by `EventEncoder`.

    Discriminators are resolved against registered types, subclasses of
    `bases` are registered lazily the first time an unknown name is met.
    """

    def __init__(
        self,
        *types: type,
        discriminator: str = DEFAULT_DISCRIMINATOR,
        bases: tuple[type, ...] = (Event,),
    ):
        self._discriminator = discriminator
        self._bases = bases
        self._types: dict[str, type] = {}
        self.register(EventWithMetaData, EventMetaData, *types)

    def register(self, *types: type) -> None:
        self._types.update({type_id(t): t for t in types})

    def resolve(self, name: str) -> type:
        try:
            return self._types[name]
        except KeyError:
            for base in self._bases:
                self.register(*all_subclasses(base))
            # if fail again just raise

        try:
            return self._types[name]
        except KeyError:
            raise UnknownTypeIdError(name)

    def from_tagged(self, raw: Any, hint: Any = Any) -> Any:
        origin = get_origin(hint)
        args = get_args(hint)

        if isinstance(raw, dict):
            if (name := raw.get(self._discriminator)) is not None:
                cls = self.resolve(name)
                hints = field_types(cls)
                kwargs = {
                    k: self.from_tagged(v, hints[k])
                    for k, v in raw.items()
                    if k in hints
                }
                return cls(**kwargs)
            if hint is Any:
                return {k: self.from_tagged(v) for k, v in raw.items()}
            if origin in (dict, Mapping) and len(args) == 2:
                # json object keys are always strings
                return {
                    msgspec.convert(k, type=args[0], strict=False): self.from_tagged(v, args[1])
                    for k, v in raw.items()
                }
            return msgspec.convert(raw, type=hint)

        if isinstance(raw, list):
            if origin is tuple and args and args[-1] is not Ellipsis:
                return tuple(self.from_tagged(v, t) for v, t in zip(raw, args))
            elem = args[0] if origin in (list, tuple, set, frozenset, Sequence) and args else Any
            items = [self.from_tagged(v, elem) for v in raw]
            if origin in (tuple, set, frozenset):
                return origin(items)
            return items

        if hint is Any:
            return raw
        return msgspec.convert(raw, type=hint)

    def decode(self, data: bytes | str) -> Any:
        return self.from_tagged(msgspec.json.decode(data))
