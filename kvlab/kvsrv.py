"""Single-server versioned key/value store and the clerk that talks to it.

Every key carries a version number. A put succeeds only when the request's
version matches the key's current version, and each successful put
increments that version. A put at version 0 creates a key that does not
exist yet.
"""

from __future__ import annotations

import threading
import time
from typing import Any

from kvlab import labgob
from kvlab.rpc import Err, GetArgs, GetReply, PutArgs, PutReply, Tversion

_RETRY_INTERVAL = 0.01  # seconds between attempts after a lost call

for _record in (Err, GetArgs, GetReply, PutArgs, PutReply):
    labgob.register(_record)


class KVServer:
    """In-memory key/value server with conditional puts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict = {}

    def get(self, args: GetArgs) -> GetReply:
        """Return the value and version of ``args.key``, or ERR_NO_KEY."""
        with self._lock:
            entry = self._data.get(args.key)
        if entry is None:
            return GetReply(err=Err.ERR_NO_KEY)
        value, version = entry
        return GetReply(value=value, version=version, err=Err.OK)

    def put(self, args: PutArgs) -> PutReply:
        """Install ``args.value`` if ``args.version`` matches the key's version.

        A missing key is created when the version is 0; otherwise the answer
        is ERR_NO_KEY. A version mismatch on an existing key gives ERR_VERSION.
        """
        with self._lock:
            entry = self._data.get(args.key)
            if entry is None:
                if args.version != 0:
                    return PutReply(err=Err.ERR_NO_KEY)
                self._data[args.key] = (args.value, 1)
                return PutReply(err=Err.OK)
            _, version = entry
            if version != args.version:
                return PutReply(err=Err.ERR_VERSION)
            self._data[args.key] = (args.value, version + 1)
            return PutReply(err=Err.OK)

    def kill(self) -> None:
        """Stop serving; this server holds nothing that needs releasing."""


class Clerk:
    """Client of a :class:`KVServer` reached through an RPC end-point.

    Calls whose reply is lost are retried until one gets through.
    """

    def __init__(
        self,
        end: Any,
        service: str = "KVServer",
        retry_interval: float = _RETRY_INTERVAL,
    ) -> None:
        self._end = end
        self._service = service
        self._retry_interval = retry_interval

    def _call(self, method: str, args: Any) -> Any:
        return self._end.call(f"{self._service}.{method}", args)

    def get(self, key: str) -> tuple:
        """Return ``(value, version, err)`` for ``key``; err is OK or ERR_NO_KEY."""
        args = GetArgs(key=key)
        while True:
            try:
                reply = self._call("get", args)
            except ConnectionError:
                time.sleep(self._retry_interval)
                continue
            return reply.value, reply.version, reply.err

    def put(self, key: str, value: str, version: Tversion) -> Err:
        """Conditionally put ``value``.

        ERR_VERSION from the first attempt means the put was not performed.
        ERR_VERSION from a resend becomes ERR_MAYBE, since an earlier attempt
        may have been applied with its reply lost.
        """
        args = PutArgs(key=key, value=value, version=version)
        first_attempt = True
        while True:
            try:
                reply = self._call("put", args)
            except ConnectionError:
                first_attempt = False
                time.sleep(self._retry_interval)
                continue
            if reply.err == Err.ERR_VERSION and not first_attempt:
                return Err.ERR_MAYBE
            return reply.err