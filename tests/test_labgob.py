import io
import json
import struct
from dataclasses import dataclass, field

import pytest

from kvlab.labgob import (
    LabDecoder,
    LabEncoder,
    error_count,
    register,
    register_name,
)
from kvlab.rpc import Err, GetReply


@dataclass
class T1:
    t1int0: int = 0
    t1int1: int = 0
    t1string0: str = ""
    t1string1: str = ""


@dataclass
class T2:
    t2slice: list = field(default_factory=list)
    t2map: dict = field(default_factory=dict)
    t2t3: object = None


@dataclass
class T3:
    t3int999: int = 0


@dataclass(frozen=True)
class T4:
    yes: int
    _no: int = 0


def test_gob():
    e0 = error_count()
    w = io.BytesIO()
    register(T3())

    t1 = T1(t1int1=1, t1string1="6.5840")
    t2 = T2(
        t2slice=[T1(), t1],
        t2map={99: T1(1, 2, "x", "y")},
        t2t3=T3(999),
    )
    e = LabEncoder(w)
    e.encode(0)
    e.encode(1)
    e.encode(t1)
    e.encode(t2)

    d = LabDecoder(io.BytesIO(w.getvalue()))
    x0 = d.decode()
    x1 = d.decode()
    got1 = d.decode_into(T1())
    got2 = d.decode()

    assert x0 == 0
    assert x1 == 1
    assert got1.t1int0 == 0
    assert got1.t1int1 == 1
    assert got1.t1string0 == ""
    assert got1.t1string1 == "6.5840"
    assert len(got2.t2slice) == 2
    assert got2.t2slice[1].t1int1 == 1
    assert len(got2.t2map) == 1
    assert got2.t2map[99].t1string1 == "y"
    assert isinstance(got2.t2t3, T3)
    assert got2.t2t3.t3int999 == 999

    assert error_count() == e0


def test_capital():
    e0 = error_count()
    v = [{T4(1): 2}]

    w = io.BytesIO()
    LabEncoder(w).encode(v)

    v1 = LabDecoder(io.BytesIO(w.getvalue())).decode()

    assert error_count() == e0 + 1
    assert v1 == [{T4(1): 2}]


def test_default():
    e0 = error_count()

    @dataclass
    class DD:
        x: int = 0

    w = io.BytesIO()
    LabEncoder(w).encode(DD())

    reply = DD(99)
    LabDecoder(io.BytesIO(w.getvalue())).decode_into(reply)

    assert error_count() == e0 + 1
    assert reply.x == 0


def test_empty_stream_raises_eof():
    with pytest.raises(EOFError):
        LabDecoder(io.BytesIO(b"")).decode()


def test_truncated_stream_rejected():
    w = io.BytesIO()
    LabEncoder(w).encode("hello")
    data = w.getvalue()
    with pytest.raises(ValueError):
        LabDecoder(io.BytesIO(data[:-2])).decode()
    with pytest.raises(ValueError):
        LabDecoder(io.BytesIO(data[:2])).decode()


def test_header_holds_body_length():
    w = io.BytesIO()
    LabEncoder(w).encode({"a": [1, 2]})
    data = w.getvalue()
    (length,) = struct.unpack(">I", data[:4])
    assert length == len(data) - 4


def test_unsupported_type_rejected():
    with pytest.raises(TypeError):
        LabEncoder(io.BytesIO()).encode(object())


def test_unknown_type_name_rejected():
    body = json.dumps(["d", "no.such.Type", {}]).encode()
    data = struct.pack(">I", len(body)) + body
    with pytest.raises(ValueError):
        LabDecoder(io.BytesIO(data)).decode()


def test_malformed_message_rejected():
    body = b"not json"
    data = struct.pack(">I", len(body)) + body
    with pytest.raises(ValueError):
        LabDecoder(io.BytesIO(data)).decode()


def test_register_name_conflicts():
    @dataclass
    class A:
        n: int = 0

    @dataclass
    class B:
        n: int = 0

    register_name("kvlab.tests.dup", A)
    register_name("kvlab.tests.dup", A)
    with pytest.raises(ValueError):
        register_name("kvlab.tests.dup", B)
    with pytest.raises(ValueError):
        register_name("kvlab.tests.other", A)


def test_register_requires_record_type():
    with pytest.raises(TypeError):
        register(5)


def test_registered_name_used_on_wire():
    @dataclass
    class Named:
        n: int = 0

    register_name("kvlab.tests.named", Named)
    w = io.BytesIO()
    LabEncoder(w).encode(Named(4))
    tree = json.loads(w.getvalue()[4:])
    assert tree[1] == "kvlab.tests.named"
    assert LabDecoder(io.BytesIO(w.getvalue())).decode() == Named(4)


def test_enum_and_reply_round_trip():
    w = io.BytesIO()
    e = LabEncoder(w)
    e.encode(Err.ERR_MAYBE)
    e.encode(GetReply("v", 7, Err.OK))
    d = LabDecoder(io.BytesIO(w.getvalue()))
    assert d.decode() is Err.ERR_MAYBE
    reply = d.decode()
    assert reply == GetReply("v", 7, Err.OK)
    assert reply.err is Err.OK


def test_mixed_values_round_trip():
    values = [None, True, 2.5, b"\x00\xffbytes", ("a", 1), {(1, 2): [None, "x"]}]
    w = io.BytesIO()
    e = LabEncoder(w)
    for value in values:
        e.encode(value)
    d = LabDecoder(io.BytesIO(w.getvalue()))
    assert [d.decode() for _ in values] == values
    with pytest.raises(EOFError):
        d.decode()


def test_decode_into_wrong_type_rejected():
    w = io.BytesIO()
    LabEncoder(w).encode(T3(1))
    with pytest.raises(TypeError):
        LabDecoder(io.BytesIO(w.getvalue())).decode_into(T1())


def test_decode_into_requires_record():
    w = io.BytesIO()
    LabEncoder(w).encode(1)
    with pytest.raises(TypeError):
        LabDecoder(io.BytesIO(w.getvalue())).decode_into(0)