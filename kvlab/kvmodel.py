"""Sequential specification of a versioned key/value store, for checking histories."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable

GET = 0
PUT = 1


@dataclass(frozen=True)
class KvInput:
    """A request: ``op`` is GET or PUT."""

    op: int
    key: str
    value: str = ""
    version: int = 0


@dataclass(frozen=True)
class KvOutput:
    """What the store answered."""

    value: str = ""
    version: int = 0
    err: str = ""


@dataclass(frozen=True)
class KvState:
    """State of a single key."""

    value: str = ""
    version: int = 0


@dataclass(frozen=True)
class Operation:
    """One completed client call with its start and end timestamps."""

    input: KvInput
    output: KvOutput
    call_time: int = 0
    return_time: int = 0
    client_id: int = 0


def partition(history: Iterable[Operation]) -> list:
    """Split a history into per-key histories, ordered by key."""
    groups: dict = defaultdict(list)
    for op in history:
        groups[op.input.key].append(op)
    return [groups[key] for key in sorted(groups)]


def init_state() -> KvState:
    """State of a key that has never been written."""
    return KvState("", 0)


def step(state: KvState, inp: KvInput, out: KvOutput) -> tuple:
    """Return whether ``out`` is allowed for ``inp`` in ``state``, and the next state."""
    if inp.op == GET:
        return out.value == state.value, state
    if inp.op == PUT:
        if state.version == inp.version:
            return out.err in ("OK", "ErrMaybe"), KvState(inp.value, state.version + 1)
        return out.err in ("ErrVersion", "ErrMaybe"), state
    return False, "<invalid>"


def describe_operation(inp: KvInput, out: KvOutput) -> Any:
    """Human-readable form of one operation."""
    if inp.op == GET:
        return f"get('{inp.key}') -> ('{out.value}', '{out.version}', '{out.err}')"
    if inp.op == PUT:
        return f"put('{inp.key}', '{inp.value}', '{inp.version}') -> ('{out.err}')"
    return "<invalid>"