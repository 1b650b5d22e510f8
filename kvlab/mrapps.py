"""MapReduce applications: word count, indexer, and fault-injection apps."""

from __future__ import annotations

import os
import secrets
import time
from dataclasses import dataclass
from itertools import groupby
from pathlib import Path
from typing import Callable

from kvlab.mrtypes import KeyValue

MapFunc = Callable[[str, str], list]
ReduceFunc = Callable[[str, list], str]


@dataclass(frozen=True)
class App:
    """A named pair of map and reduce functions."""

    name: str
    mapf: MapFunc
    reducef: ReduceFunc


def _words(text: str) -> list:
    """Maximal runs of letters; everything else separates words."""
    return ["".join(run) for is_letter, run in groupby(text, str.isalpha) if is_letter]


def wc_map(filename: str, contents: str) -> list:
    """Emit ``(word, "1")`` for every word in ``contents``."""
    return [KeyValue(word, "1") for word in _words(contents)]


def wc_reduce(key: str, values: list) -> str:
    """Number of occurrences of the word."""
    return str(len(values))


def indexer_map(document: str, value: str) -> list:
    """Emit ``(word, document)`` once for each distinct word in the document."""
    return [KeyValue(word, document) for word in dict.fromkeys(_words(value))]


def indexer_reduce(key: str, values: list) -> str:
    """Count of documents and their sorted, comma-separated names."""
    names = sorted(values)
    return f"{len(names)} {','.join(names)}"


def _maybe_crash() -> None:
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        time.sleep(secrets.randbelow(10 * 1000) / 1000.0)


def _describe_file(filename: str, contents: str) -> list:
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode("utf-8")))),
        KeyValue("c", str(len(contents.encode("utf-8")))),
        KeyValue("d", "xyzzy"),
    ]


def _sorted_join(values: list) -> str:
    return " ".join(sorted(values))


def crash_map(filename: str, contents: str) -> list:
    """Describe the file, but sometimes exit the process or stall first."""
    _maybe_crash()
    return _describe_file(filename, contents)


def crash_reduce(key: str, values: list) -> str:
    """Sorted values joined by spaces, but sometimes exit or stall first."""
    _maybe_crash()
    return _sorted_join(values)


def nocrash_map(filename: str, contents: str) -> list:
    """Like :func:`crash_map`, without the faults."""
    return _describe_file(filename, contents)


def nocrash_reduce(key: str, values: list) -> str:
    """Like :func:`crash_reduce`, without the faults."""
    return _sorted_join(values)


def early_exit_map(filename: str, contents: str) -> list:
    """Emit ``(filename, "1")``."""
    return [KeyValue(filename, "1")]


def early_exit_reduce(key: str, values: list) -> str:
    """Count values; some keys take a long time, to catch workers that quit early."""
    if "sherlock" in key or "tom" in key:
        time.sleep(3)
    return str(len(values))


_APPS = {
    app.name: app
    for app in (
        App("wc", wc_map, wc_reduce),
        App("indexer", indexer_map, indexer_reduce),
        App("crash", crash_map, crash_reduce),
        App("nocrash", nocrash_map, nocrash_reduce),
        App("early_exit", early_exit_map, early_exit_reduce),
    )
}


def get_app(name: str) -> App:
    """Look up an application by name; a path such as ``mrapps/wc.so`` also works."""
    app = _APPS.get(Path(name).stem)
    if app is None:
        raise ValueError(f"unknown application {name!r}; expecting one of {sorted(_APPS)}")
    return app