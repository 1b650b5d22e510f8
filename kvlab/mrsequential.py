"""Sequential MapReduce: map every input, sort, reduce, write one output file."""

from __future__ import annotations

import sys
from itertools import groupby
from operator import attrgetter
from pathlib import Path
from typing import Callable, Iterable, Optional

from kvlab.mrapps import get_app

_OUTPUT = "mr-out-0"


def run_sequential(
    mapf: Callable[[str, str], list],
    reducef: Callable[[str, list], str],
    filenames: Iterable[str],
    output: str = _OUTPUT,
) -> list:
    """Run a whole job in one process and write ``key result`` lines to ``output``.

    Returns the ``(key, result)`` pairs in the order written.
    """
    intermediate = []
    for filename in filenames:
        contents = Path(filename).read_text(encoding="utf-8", errors="replace")
        intermediate.extend(mapf(filename, contents))

    intermediate.sort(key=attrgetter("key"))

    results = []
    with open(output, "w", encoding="utf-8") as out:
        for key, group in groupby(intermediate, key=attrgetter("key")):
            result = reducef(key, [kv.value for kv in group])
            out.write(f"{key} {result}\n")
            results.append((key, result))
    return results


def main(argv: Optional[list] = None) -> int:
    """Command entry: ``mrsequential APP inputfiles...``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("Usage: mrsequential xxx.so inputfiles...", file=sys.stderr)
        return 1
    try:
        app = get_app(args[0])
    except ValueError:
        print(f"cannot load plugin {args[0]}", file=sys.stderr)
        return 1
    try:
        run_sequential(app.mapf, app.reducef, args[1:], _OUTPUT)
    except OSError as exc:
        print(f"cannot read {exc.filename}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())