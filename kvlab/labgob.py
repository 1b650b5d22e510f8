"""Self-describing serialization for RPC messages and persisted state.

Values are written as length-prefixed, tagged JSON so that nothing but plain
data crosses a message boundary. Dataclass fields whose names begin with an
underscore are not transmitted; a warning is logged the first time such a
type is seen, and decoding into a record that already holds non-default
values is reported as well.
"""

from __future__ import annotations

import base64
import dataclasses
import json
import logging
import struct
import threading
from enum import Enum
from typing import Any, BinaryIO

_log = logging.getLogger(__name__)

_lock = threading.RLock()
_error_count = 0
_checked: set = set()
_types_by_name: dict = {}
_names_by_type: dict = {}

_HEADER = struct.Struct(">I")


def error_count() -> int:
    """Number of problems reported so far in this process."""
    with _lock:
        return _error_count


def _is_exported(name: str) -> bool:
    return not name.startswith("_")


def _is_record_type(cls: type) -> bool:
    return dataclasses.is_dataclass(cls) or (isinstance(cls, type) and issubclass(cls, Enum))


def _default_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _bind(name: str, cls: type) -> None:
    with _lock:
        existing = _types_by_name.get(name)
        if existing is not None and existing is not cls:
            raise ValueError(f"labgob: registering duplicate types for {name!r}")
        old_name = _names_by_type.get(cls)
        if old_name is not None and old_name != name:
            raise ValueError(f"labgob: registering duplicate names for {cls.__qualname__}")
        _types_by_name[name] = cls
        _names_by_type[cls] = name


def _type_of(value: Any) -> type:
    cls = value if isinstance(value, type) else type(value)
    if not _is_record_type(cls):
        raise TypeError(f"labgob: only dataclasses and enums can be registered, not {cls.__name__}")
    return cls


def register(value: Any) -> None:
    """Register a dataclass or enum (type or instance) under its default name."""
    cls = _type_of(value)
    _check_type(cls)
    _bind(_default_name(cls), cls)


def register_name(name: str, value: Any) -> None:
    """Register a dataclass or enum (type or instance) under ``name``."""
    cls = _type_of(value)
    _check_type(cls)
    _bind(name, cls)


def _name_for(cls: type) -> str:
    with _lock:
        name = _names_by_type.get(cls)
        if name is None:
            name = _default_name(cls)
            _bind(name, cls)
        return name


def _lookup(name: str) -> type:
    with _lock:
        cls = _types_by_name.get(name)
    if cls is None:
        raise ValueError(f"labgob: type not registered for name {name!r}")
    return cls


def _report(message: str) -> None:
    global _error_count
    with _lock:
        _error_count += 1
    _log.warning(message)


def _check_type(cls: type) -> None:
    with _lock:
        if cls in _checked:
            return
        _checked.add(cls)
    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if not _is_exported(f.name):
                _report(
                    f"labgob error: private field {f.name} of {cls.__name__} "
                    "in RPC or persist/snapshot will not be transmitted"
                )


def _check_value(value: Any) -> None:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        _check_type(type(value))
        for f in dataclasses.fields(value):
            _check_value(getattr(value, f.name))
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_value(item)
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)


def _is_zero(value: Any) -> bool:
    raw = value.value if isinstance(value, Enum) else value
    if isinstance(raw, (bool, int, float, str)):
        return raw == type(raw)()
    return True


def _check_default(value: Any, depth: int, name: str) -> None:
    global _error_count
    if depth > 3 or value is None:
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            name1 = f"{name}.{f.name}" if name else f.name
            _check_default(getattr(value, f.name), depth + 1, name1)
        return
    if not _is_zero(value):
        with _lock:
            if _error_count < 1:
                what = name or type(value).__name__
                _log.warning(
                    "labgob warning: Decoding into a non-default variable/field %s may not work",
                    what,
                )
            _error_count += 1


def _to_tree(value: Any) -> Any:
    if value is None:
        return ["z"]
    if isinstance(value, Enum):
        return ["e", _name_for(type(value)), _to_tree(value.value)]
    if isinstance(value, bool):
        return ["b", value]
    if isinstance(value, int):
        return ["i", value]
    if isinstance(value, float):
        return ["f", value]
    if isinstance(value, str):
        return ["s", value]
    if isinstance(value, (bytes, bytearray)):
        return ["y", base64.b64encode(bytes(value)).decode("ascii")]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {
            f.name: _to_tree(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if _is_exported(f.name)
        }
        return ["d", _name_for(type(value)), fields]
    if isinstance(value, list):
        return ["l", [_to_tree(item) for item in value]]
    if isinstance(value, tuple):
        return ["t", [_to_tree(item) for item in value]]
    if isinstance(value, dict):
        return ["m", [[_to_tree(k), _to_tree(v)] for k, v in value.items()]]
    raise TypeError(f"labgob: cannot encode value of type {type(value).__name__}")


def _scalar(payload: Any, kinds: tuple, tag: str) -> Any:
    if isinstance(payload, bool) and bool not in kinds:
        raise ValueError(f"labgob: malformed {tag!r} value")
    if not isinstance(payload, kinds):
        raise ValueError(f"labgob: malformed {tag!r} value")
    return payload


def _build_record(cls: type, payload: dict) -> Any:
    if not dataclasses.is_dataclass(cls) or not isinstance(payload, dict):
        raise ValueError(f"labgob: {cls.__name__} is not a record type")
    obj = cls.__new__(cls)
    for f in dataclasses.fields(cls):
        if f.name in payload and _is_exported(f.name):
            value = _from_tree(payload[f.name])
        elif f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            value = None
        object.__setattr__(obj, f.name, value)
    return obj


def _from_tree(node: Any) -> Any:
    if not isinstance(node, list) or not node:
        raise ValueError("labgob: malformed value")
    tag = node[0]
    if tag == "z":
        return None
    if len(node) < 2:
        raise ValueError(f"labgob: malformed {tag!r} value")
    payload = node[1]
    if tag == "b":
        return _scalar(payload, (bool,), tag)
    if tag == "i":
        return _scalar(payload, (int,), tag)
    if tag == "f":
        return float(_scalar(payload, (int, float), tag))
    if tag == "s":
        return _scalar(payload, (str,), tag)
    if tag == "y":
        return base64.b64decode(_scalar(payload, (str,), tag), validate=True)
    if tag == "l":
        return [_from_tree(item) for item in _scalar(payload, (list,), tag)]
    if tag == "t":
        return tuple(_from_tree(item) for item in _scalar(payload, (list,), tag))
    if tag == "m":
        result = {}
        for pair in _scalar(payload, (list,), tag):
            if not isinstance(pair, list) or len(pair) != 2:
                raise ValueError("labgob: malformed map entry")
            result[_from_tree(pair[0])] = _from_tree(pair[1])
        return result
    if tag == "e":
        if len(node) != 3:
            raise ValueError("labgob: malformed enum value")
        cls = _lookup(_scalar(payload, (str,), tag))
        if not issubclass(cls, Enum):
            raise ValueError(f"labgob: {cls.__name__} is not an enum")
        return cls(_from_tree(node[2]))
    if tag == "d":
        if len(node) != 3:
            raise ValueError("labgob: malformed record value")
        return _build_record(_lookup(_scalar(payload, (str,), tag)), node[2])
    raise ValueError(f"labgob: unknown tag {tag!r}")


class LabEncoder:
    """Writes values to a binary stream, one message per value."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def encode(self, value: Any) -> None:
        _check_value(value)
        body = json.dumps(_to_tree(value), separators=(",", ":")).encode("utf-8")
        self._stream.write(_HEADER.pack(len(body)) + body)


class LabDecoder:
    """Reads values written by :class:`LabEncoder` from a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def _read_message(self) -> bytes:
        header = self._stream.read(_HEADER.size)
        if not header:
            raise EOFError("labgob: no more values")
        if len(header) < _HEADER.size:
            raise ValueError("labgob: truncated message header")
        (length,) = _HEADER.unpack(header)
        body = self._stream.read(length)
        if len(body) < length:
            raise ValueError("labgob: truncated message body")
        return body

    def decode(self) -> Any:
        """Return the next value; raise EOFError when the stream is exhausted."""
        body = self._read_message()
        try:
            tree = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError("labgob: message is not valid") from exc
        value = _from_tree(tree)
        _check_value(value)
        return value

    def decode_into(self, target: Any) -> Any:
        """Decode the next record and copy its fields into ``target``."""
        if not dataclasses.is_dataclass(target) or isinstance(target, type):
            raise TypeError("labgob: decode_into needs a dataclass instance")
        _check_type(type(target))
        _check_default(target, 2, "")
        value = self.decode()
        if not isinstance(value, type(target)):
            raise TypeError(
                f"labgob: cannot decode {type(value).__name__} into {type(target).__name__}"
            )
        for f in dataclasses.fields(target):
            if _is_exported(f.name):
                object.__setattr__(target, f.name, getattr(value, f.name))
        return target