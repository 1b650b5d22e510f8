# kvlab

Small, self-contained building blocks for experimenting with distributed
systems in Python. No third-party libraries are needed.

- `kvlab.labrpc`: an in-process RPC network that can drop, delay and reorder
  messages, disconnect client end-points and kill servers (`Network`,
  `ClientEnd`, `Server`, `Service`).
- `kvlab.labgob`: a stream encoder/decoder (`LabEncoder`, `LabDecoder`) for
  dataclasses, enums, lists, tuples, dicts and scalars. Types are registered
  with `register` or `register_name`; dataclass fields whose names start with
  an underscore are not transmitted and are reported, as is decoding into a
  record that already holds non-default values. `error_count()` tells how
  many problems were reported.
- `kvlab.rpc`: argument and reply records for the key/value service
  (`PutArgs`, `PutReply`, `GetArgs`, `GetReply`) and the `Err` codes.
- `kvlab.kvsrv`: a versioned key/value server and its retrying client
  (`KVServer`, `Clerk`).
- `kvlab.kvmodel`: a sequential model of a versioned key/value store for
  checking histories of operations (`KvInput`, `KvOutput`, `KvState`,
  `Operation`, `partition`, `init_state`, `step`, `describe_operation`).
- `kvlab.mrtypes`, `kvlab.coordinator`, `kvlab.mrapps`, `kvlab.mrsequential`:
  MapReduce task records and the `ihash` partitioning hash, a task
  coordinator, example applications and a sequential runner.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## A simulated network

```python
from kvlab.labrpc import Network, Server, Service

class Echo:
    def Shout(self, args):
        return args.upper()

net = Network()
end = net.make_end("client-1")
server = Server()
server.add_service(Service(Echo()))
net.add_server("server-1", server)
net.connect("client-1", "server-1")
net.enable("client-1", True)

reply = end.call("Echo.Shout", "hello")   # "HELLO"
net.cleanup()
```

A handler is any public method of the service object that takes exactly one
argument and returns the reply. `call` returns that reply, or raises
`ConnectionError` when none arrives: the end-point is disabled or
unconnected, the server was deleted, the network was cleaned up, or, after
`net.reliable(False)`, the request or reply was lost. `long_delays` and
`long_reordering` make failed calls and replies slower to arrive.
`get_count`, `get_total_count` and `get_total_bytes` report traffic.
`Network` can also be used as a context manager.

## The key/value service

```python
from kvlab.labrpc import Network, Server, Service
from kvlab.kvsrv import KVServer, Clerk
from kvlab.rpc import Err

net = Network()
server = Server()
server.add_service(Service(KVServer()))
net.add_server("kv", server)
end = net.make_end("c1")
net.connect("c1", "kv")
net.enable("c1", True)

ck = Clerk(end)
assert ck.put("k", "v", 0) is Err.OK
value, version, err = ck.get("k")          # ("v", 1, Err.OK)
assert ck.put("k", "w", 0) is Err.ERR_VERSION
```

Every key carries a version. A put succeeds only when the version it names
matches the server's, and then increments it; a put with version 0 creates a
missing key, while any other version on a missing key gives `ERR_NO_KEY`.
The clerk retries calls that get no reply. If a retried put is answered with
`ERR_VERSION`, the clerk returns `ERR_MAYBE`, because an earlier attempt may
have been applied.

## MapReduce

`Coordinator(files, n_reduce)` creates one map task per input file and
answers `get_task_handler()` with a `GetTaskReply` whose `task_type` is
`"map"`, `"reduce"`, `"wait"` or `"shutdown"`. `serve()` answers these calls
over a UNIX-domain socket (by default the path from `coordinator_sock()`).

`get_app(name)` returns an `App` with `mapf` and `reducef` for `wc`,
`indexer`, `crash` (which sometimes exits or stalls), `nocrash` or
`early_exit`; a name such as `mrapps/wc.so` is accepted too.

The `kvlab-mrsequential` command runs one application over a set of input
files and writes `mr-out-0`:

```
kvlab-mrsequential wc pg-*.txt
```

Each output line is a key, a space and the value the reduce function returned
for it, with keys in sorted order. `run_sequential` does the same from
Python and returns the `(key, result)` pairs.

## What is not included

- There is no MapReduce worker and no client for the coordinator's socket;
  only the sequential runner executes applications.
- The coordinator has no handler for reporting finished tasks and creates no
  reduce tasks; task status must be set on `map_tasks` directly for the job
  to move on to reduce and shutdown, and `done()` becomes true only once
  `get_task_handler` has seen every task completed.
- The key/value server keeps its data in memory only, on a single server,
  with no replication, persistence or snapshots.