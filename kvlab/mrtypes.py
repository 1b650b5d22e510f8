"""Records exchanged between MapReduce workers and the coordinator."""

from __future__ import annotations

import os
from dataclasses import dataclass

from kvlab import labgob

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


@dataclass(frozen=True)
class KeyValue:
    """One key/value pair emitted by a map function."""

    key: str
    value: str


@dataclass
class GetTaskArgs:
    """A worker asking for work; carries nothing."""


@dataclass
class GetTaskReply:
    """The coordinator's answer: a map or reduce task, or wait, or shutdown."""

    task_type: str = ""
    task_id: int = 0
    filename: str = ""
    n_reduce: int = 0


@dataclass
class CompleteTaskArgs:
    """A worker reporting that it finished a task."""

    task_type: str = ""
    task_id: int = 0


@dataclass
class CompleteTaskReply:
    """The coordinator's acknowledgement of a finished task."""

    acknowledged: bool = False


for _record in (KeyValue, GetTaskArgs, GetTaskReply, CompleteTaskArgs, CompleteTaskReply):
    labgob.register(_record)


def ihash(key: str) -> int:
    """Non-negative 31-bit FNV-1a hash of ``key``; use ``ihash(key) % n_reduce``."""
    h = _FNV32_OFFSET
    for byte in key.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def coordinator_sock() -> str:
    """Per-user UNIX-domain socket path for the coordinator."""
    return f"/var/tmp/5840-mr-{os.getuid()}"