"""MapReduce coordinator: hands out map tasks, then reduce tasks, then shutdown."""

from __future__ import annotations

import contextlib
import os
import socketserver
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kvlab.labgob import LabDecoder, LabEncoder
from kvlab.mrtypes import GetTaskArgs, GetTaskReply, coordinator_sock

_MAP = "map"
_REDUCE = "reduce"
_COMPLETED = "completed"


class TaskStatus(str, Enum):
    """Progress of one task."""

    NOT_STARTED = "notstarted"
    IN_PROGRESS = "inprogress"
    COMPLETED = "completed"


@dataclass
class MapTask:
    """A map task over one input file."""

    id: int
    filename: str
    status: TaskStatus = TaskStatus.NOT_STARTED
    start_time: Optional[float] = None


@dataclass
class ReduceTask:
    """A reduce task."""

    id: int
    key: str = ""
    status: TaskStatus = TaskStatus.NOT_STARTED
    start_time: Optional[float] = None


def create_map_tasks(files: list) -> list:
    """One not-yet-started map task per input file, numbered from 0."""
    return [MapTask(id=i, filename=name) for i, name in enumerate(files)]


class Coordinator:
    """Tracks task state and answers workers' requests for work."""

    def __init__(self, files: list, n_reduce: int) -> None:
        self._lock = threading.Lock()
        self.map_tasks = create_map_tasks(files)
        self.reduce_tasks: list = []
        self.n_reduce = n_reduce
        self.state = _MAP

    def get_task_handler(self, args: Optional[GetTaskArgs] = None) -> GetTaskReply:
        """Hand out the next task, or tell the worker to wait or shut down."""
        with self._lock:
            if self.state == _MAP:
                task = _first_not_started(self.map_tasks)
                if task is not None:
                    task.status = TaskStatus.IN_PROGRESS
                    task.start_time = time.time()
                    return GetTaskReply(
                        task_type="map",
                        task_id=task.id,
                        filename=task.filename,
                        n_reduce=self.n_reduce,
                    )
                if not _all_completed(self.map_tasks):
                    return GetTaskReply(task_type="wait")
                self.state = _REDUCE

            if self.state == _REDUCE:
                task = _first_not_started(self.reduce_tasks)
                if task is not None:
                    task.status = TaskStatus.IN_PROGRESS
                    task.start_time = time.time()
                    return GetTaskReply(task_type="reduce", task_id=task.id)
                if not _all_completed(self.reduce_tasks):
                    return GetTaskReply(task_type="wait")
                self.state = _COMPLETED

            if self.state == _COMPLETED:
                return GetTaskReply(task_type="shutdown")

            raise RuntimeError(f"unexpected coordinator state: {self.state}")

    def done(self) -> bool:
        """True once the whole job has finished."""
        with self._lock:
            return self.state == _COMPLETED

    def serve(self, sockname: Optional[str] = None) -> socketserver.BaseServer:
        """Listen for worker calls on a UNIX-domain socket in a background thread.

        Returns the running server; call ``shutdown()`` and ``server_close()`` on it
        to stop.
        """
        path = sockname or coordinator_sock()
        with contextlib.suppress(FileNotFoundError):
            os.remove(path)
        server = _RPCServer(path, _RPCHandler)
        server.coordinator = self
        threading.Thread(target=server.serve_forever, daemon=True).start()
        return server


def _first_not_started(tasks: list):
    return next((t for t in tasks if t.status is TaskStatus.NOT_STARTED), None)


def _all_completed(tasks: list) -> bool:
    return all(t.status is TaskStatus.COMPLETED for t in tasks)


_HANDLERS = {
    "get_task_handler": GetTaskArgs,
}


class _RPCServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True
    coordinator: Coordinator


class _RPCHandler(socketserver.StreamRequestHandler):
    """One call per connection: a method name and its argument, answered with a dict."""

    def handle(self) -> None:
        decoder = LabDecoder(self.rfile)
        try:
            method = decoder.decode()
            args = decoder.decode()
        except (EOFError, ValueError, TypeError):
            return
        encoder = LabEncoder(self.wfile)
        arg_type = _HANDLERS.get(method) if isinstance(method, str) else None
        if arg_type is None:
            encoder.encode({"error": f"unknown method {method!r}"})
            return
        if not isinstance(args, arg_type):
            encoder.encode({"error": f"{method} expects {arg_type.__name__}"})
            return
        try:
            reply = getattr(self.server.coordinator, method)(args)
        except Exception as exc:  # reported to the caller
            encoder.encode({"error": str(exc)})
            return
        encoder.encode({"reply": reply})