"""In-process RPC over a simulated network.

The network can lose requests and replies, delay messages, and cut off
individual client end-points. Arguments and replies are serialized with
:mod:`kvlab.labgob`, so no object references cross a call.

Typical use::

    net = Network()
    end = net.make_end("client-1")
    server = Server()
    server.add_service(Service(handler_object))
    net.add_server("server-1", server)
    net.connect("client-1", "server-1")
    net.enable("client-1", True)
    reply = end.call("HandlerType.method", args)

A handler is any public method of the service object that takes exactly one
argument (the request) and returns the reply. :meth:`ClientEnd.call` raises
:class:`ConnectionError` whenever no reply arrives: the request or reply was
lost, the end-point is disabled or unconnected, or the server was deleted.
"""

from __future__ import annotations

import io
import queue
import random
import threading
import time
import types
from typing import Any, Hashable, Optional

from kvlab.labgob import LabDecoder, LabEncoder

SHORT_DELAY = 27  # ms
LONG_DELAY = 7000  # ms
MAX_DELAY = LONG_DELAY + 100

_DEAD_POLL_INTERVAL = 0.1  # seconds

_CO_VARARGS = 0x04
_CO_VARKEYWORDS = 0x08


def _encode(value: Any) -> bytes:
    buffer = io.BytesIO()
    LabEncoder(buffer).encode(value)
    return buffer.getvalue()


def _decode(data: bytes) -> Any:
    return LabDecoder(io.BytesIO(data)).decode()


def _sleep_ms(ms: int) -> None:
    if ms > 0:
        time.sleep(ms / 1000.0)


class ClientEnd:
    """A client's end-point, able to talk to whichever server it is connected to."""

    def __init__(self, network: "Network", endname: Hashable) -> None:
        self._network = network
        self._endname = endname

    @property
    def endname(self) -> Hashable:
        return self._endname

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send ``args`` to ``"Service.method"`` and return the handler's reply.

        Raises ConnectionError if no reply was received.
        """
        request = _encode(args)
        reply = self._network._deliver(self._endname, svc_meth, request)
        return _decode(reply)


class Network:
    """Holds client end-points and servers, and the links between them."""

    def __init__(self) -> None:
        self._mu = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict = {}
        self._enabled: dict = {}
        self._servers: dict = {}
        self._connections: dict = {}
        self._done = threading.Event()
        self._count = 0
        self._bytes = 0

    def __enter__(self) -> "Network":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail immediately."""
        self._done.set()

    def reliable(self, yes: bool) -> None:
        """Choose whether messages may be dropped and delayed."""
        with self._mu:
            self._reliable = yes

    def is_reliable(self) -> bool:
        with self._mu:
            return self._reliable

    def long_reordering(self, yes: bool) -> None:
        """Choose whether replies are sometimes held back for a long time."""
        with self._mu:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        """Choose whether calls over a broken link take a long time to fail."""
        with self._mu:
            self._long_delays = yes

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a disabled, unconnected client end-point."""
        with self._mu:
            if endname in self._ends:
                raise ValueError(f"make_end: {endname!r} already exists")
            end = ClientEnd(self, endname)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def delete_end(self, endname: Hashable) -> None:
        with self._mu:
            if endname not in self._ends:
                raise ValueError(f"delete_end: {endname!r} doesn't exist")
            del self._ends[endname]
            self._enabled.pop(endname, None)
            self._connections.pop(endname, None)

    def add_server(self, servername: Hashable, server: "Server") -> None:
        with self._mu:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        """Remove a server; calls in progress to it fail."""
        with self._mu:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Route an end-point's calls to the named server."""
        with self._mu:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._mu:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Number of calls the named server has received."""
        with self._mu:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(servername)
        return server.get_count()

    def get_total_count(self) -> int:
        """Number of calls sent over the network."""
        with self._mu:
            return self._count

    def get_total_bytes(self) -> int:
        """Bytes of requests and delivered replies carried by the network."""
        with self._mu:
            return self._bytes

    def _read_endname_info(self, endname: Hashable) -> tuple:
        with self._mu:
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            return (
                enabled,
                servername,
                server,
                self._reliable,
                self._long_reordering,
                self._long_delays,
            )

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: "Server") -> bool:
        with self._mu:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    def _deliver(self, endname: Hashable, svc_meth: str, request: bytes) -> bytes:
        if self._done.is_set():
            raise ConnectionError("network has been shut down")
        with self._mu:
            self._count += 1
            self._bytes += len(request)

        enabled, servername, server, reliable, reordering, long_delays = self._read_endname_info(
            endname
        )

        if not (enabled and servername is not None and server is not None):
            # simulate no reply and an eventual timeout
            _sleep_ms(random.randrange(LONG_DELAY) if long_delays else random.randrange(100))
            raise ConnectionError(f"no reply to {svc_meth}")

        if not reliable:
            _sleep_ms(random.randrange(SHORT_DELAY))
            if random.randrange(1000) < 100:
                raise ConnectionError(f"request {svc_meth} lost")

        # run the handler in its own thread so that deleting the server
        # can fail the call while the handler is still busy
        outcomes: queue.Queue = queue.Queue()
        threading.Thread(
            target=self._run_handler,
            args=(server, svc_meth, request, outcomes),
            daemon=True,
        ).start()

        outcome: Optional[tuple] = None
        while outcome is None:
            try:
                outcome = outcomes.get(timeout=_DEAD_POLL_INTERVAL)
            except queue.Empty:
                if self._is_server_dead(endname, servername, server):
                    break

        # never answer for a deleted server, even if its handler finished
        if outcome is None or self._is_server_dead(endname, servername, server):
            raise ConnectionError(f"server for {svc_meth} is gone")
        if not reliable and random.randrange(1000) < 100:
            raise ConnectionError(f"reply to {svc_meth} lost")
        if reordering and random.randrange(900) < 600:
            _sleep_ms(200 + random.randrange(1 + random.randrange(2000)))

        reply, error = outcome
        if error is not None:
            raise error
        with self._mu:
            self._bytes += len(reply)
        return reply

    @staticmethod
    def _run_handler(server: "Server", svc_meth: str, request: bytes, outcomes: queue.Queue) -> None:
        try:
            outcomes.put((server._dispatch(svc_meth, request), None))
        except Exception as exc:  # delivered to the caller
            outcomes.put((b"", exc))


class Server:
    """A collection of services sharing one network address."""

    def __init__(self) -> None:
        self._mu = threading.Lock()
        self._services: dict = {}
        self._count = 0

    def add_service(self, service: "Service") -> None:
        with self._mu:
            self._services[service.name] = service

    def get_count(self) -> int:
        """Number of calls this server has received."""
        with self._mu:
            return self._count

    def _dispatch(self, svc_meth: str, request: bytes) -> bytes:
        with self._mu:
            self._count += 1
            service_name, dot, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name) if dot else None
            choices = sorted(map(str, self._services))
        if service is None:
            raise LookupError(
                f"unknown service {service_name!r} in {svc_meth!r}; expecting one of {choices}"
            )
        return service._dispatch(method_name, svc_meth, request)


def _is_handler(function: types.FunctionType) -> bool:
    """True for a plain method taking ``self`` and exactly one request argument."""
    code = function.__code__
    if code.co_flags & (_CO_VARARGS | _CO_VARKEYWORDS):
        return False
    return code.co_argcount == 2 and code.co_kwonlyargcount == 0


def _class_attribute(cls: type, name: str) -> Any:
    for klass in cls.__mro__:
        if name in vars(klass):
            return vars(klass)[name]
    return None


class Service:
    """An object whose one-argument public methods can be called over RPC."""

    def __init__(self, receiver: Any, name: Optional[str] = None) -> None:
        self.name = name if name is not None else type(receiver).__name__
        self._receiver = receiver
        self._methods: dict = {}
        cls = type(receiver)
        for method_name in dir(cls):
            if method_name.startswith("_"):
                continue
            raw = _class_attribute(cls, method_name)
            if isinstance(raw, types.FunctionType) and _is_handler(raw):
                self._methods[method_name] = getattr(receiver, method_name)

    @property
    def methods(self) -> list:
        """Names of the methods that handle calls."""
        return sorted(self._methods)

    def _dispatch(self, method_name: str, svc_meth: str, request: bytes) -> bytes:
        method = self._methods.get(method_name)
        if method is None:
            raise LookupError(
                f"unknown method {method_name!r} in {svc_meth!r}; expecting one of {self.methods}"
            )
        reply = method(_decode(request))
        return _encode(reply)