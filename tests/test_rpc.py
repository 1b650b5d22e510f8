import pytest

from kvlab.rpc import Err, GetArgs, GetReply, PutArgs, PutReply


@pytest.mark.parametrize(
    "wire, member",
    [
        ("OK", "OK"),
        ("ErrNoKey", "ERR_NO_KEY"),
        ("ErrVersion", "ERR_VERSION"),
        ("ErrMaybe", "ERR_MAYBE"),
        ("ErrWrongLeader", "ERR_WRONG_LEADER"),
        ("ErrWrongGroup", "ERR_WRONG_GROUP"),
    ],
)
def test_err_values_match_wire_strings(wire, member):
    err = Err(wire)
    assert err.name == member
    assert err.value == wire


def test_err_lookup_by_value():
    assert Err("ErrVersion") is Err.ERR_VERSION


def test_err_str_and_format_give_value():
    assert str(Err("ErrMaybe")) == "ErrMaybe"
    assert f"{Err('OK')}" == "OK"


def test_unknown_err_rejected():
    with pytest.raises(ValueError):
        Err("ErrBogus")


def test_put_args_defaults_and_fields():
    args = PutArgs()
    assert (args.key, args.value, args.version) == ("", "", 0)
    args = PutArgs("k", "v", 3)
    assert (args.key, args.value, args.version) == ("k", "v", 3)


def test_replies_default_to_no_error():
    assert PutReply().err is None
    reply = GetReply()
    assert (reply.value, reply.version, reply.err) == ("", 0, None)


def test_get_args_equality():
    assert GetArgs("a") == GetArgs(key="a")
    assert GetArgs("a") != GetArgs("b")