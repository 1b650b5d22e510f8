"""Error codes and argument/reply records shared by key/value clerks and servers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

Tversion = int


class Err(str, Enum):
    """Outcome of a key/value request."""

    # returned by servers and clerks
    OK = "OK"
    ERR_NO_KEY = "ErrNoKey"
    ERR_VERSION = "ErrVersion"
    # returned by clerks only
    ERR_MAYBE = "ErrMaybe"
    # used by replicated and sharded services
    ERR_WRONG_LEADER = "ErrWrongLeader"
    ERR_WRONG_GROUP = "ErrWrongGroup"

    def __str__(self) -> str:
        return self.value


@dataclass
class PutArgs:
    """Conditional put: install ``value`` if the key is at ``version``."""

    key: str = ""
    value: str = ""
    version: Tversion = 0


@dataclass
class PutReply:
    """Result of a put."""

    err: Optional[Err] = None


@dataclass
class GetArgs:
    """Request for the value and version of ``key``."""

    key: str = ""


@dataclass
class GetReply:
    """Value and version of a key, or the error that prevented reading it."""

    value: str = ""
    version: Tversion = 0
    err: Optional[Err] = None