from unittest import mock

import pytest

from kvlab import mrapps
from kvlab.mrapps import (
    crash_map,
    crash_reduce,
    early_exit_map,
    early_exit_reduce,
    get_app,
    indexer_map,
    indexer_reduce,
    nocrash_map,
    nocrash_reduce,
    wc_map,
    wc_reduce,
)
from kvlab.mrtypes import KeyValue


def test_wc_map_splits_on_non_letters():
    kva = wc_map("ignored.txt", "Hello, world! Hello")
    assert [kv.key for kv in kva] == ["Hello", "world", "Hello"]
    assert all(kv.value == "1" for kv in kva)


def test_wc_map_digits_separate_words():
    assert [kv.key for kv in wc_map("f", "abc123def")] == ["abc", "def"]


def test_wc_map_empty_contents():
    assert wc_map("f", "  ... 42 ") == []


def test_wc_reduce_counts_values():
    assert wc_reduce("w", ["1", "1", "1"]) == "3"
    assert wc_reduce("w", []) == "0"


def test_indexer_map_emits_each_word_once():
    kva = indexer_map("doc", "b a b a")
    assert sorted(kv.key for kv in kva) == ["a", "b"]
    assert all(kv.value == "doc" for kv in kva)


def test_indexer_reduce_sorts_documents():
    values = ["d2", "d1"]
    assert indexer_reduce("w", values) == "2 d1,d2"
    assert values == ["d2", "d1"]


def test_nocrash_map_describes_file():
    assert nocrash_map("f.txt", "hello") == [
        KeyValue("a", "f.txt"),
        KeyValue("b", "5"),
        KeyValue("c", "5"),
        KeyValue("d", "xyzzy"),
    ]


def test_nocrash_reduce_sorts_and_joins():
    assert nocrash_reduce("k", ["c", "a", "b"]) == "a b c"


def test_crash_map_without_fault_matches_nocrash():
    with mock.patch.object(mrapps.secrets, "randbelow", return_value=700):
        assert crash_map("f.txt", "hello") == nocrash_map("f.txt", "hello")
        assert crash_reduce("k", ["y", "x"]) == "x y"


def test_crash_map_exits_on_low_roll():
    with mock.patch.object(mrapps.secrets, "randbelow", return_value=100), mock.patch.object(
        mrapps.os, "_exit"
    ) as fake_exit:
        result = crash_map("f", "c")
    fake_exit.assert_called_once_with(1)
    assert result == [
        KeyValue("a", "f"),
        KeyValue("b", "1"),
        KeyValue("c", "1"),
        KeyValue("d", "xyzzy"),
    ]


def test_crash_map_delays_on_middle_roll():
    with mock.patch.object(
        mrapps.secrets, "randbelow", side_effect=[500, 1234]
    ), mock.patch.object(mrapps.time, "sleep") as fake_sleep:
        result = crash_reduce("k", ["b", "a"])
    assert result == "a b"
    fake_sleep.assert_called_once_with(1.234)


def test_early_exit_map_and_reduce():
    assert early_exit_map("pg-x.txt", "whatever") == [KeyValue("pg-x.txt", "1")]
    assert early_exit_reduce("pg-x.txt", ["1", "1"]) == "2"


def test_early_exit_reduce_sleeps_for_slow_keys():
    with mock.patch.object(mrapps.time, "sleep") as fake_sleep:
        assert early_exit_reduce("pg-sherlock.txt", ["1"]) == "1"
    fake_sleep.assert_called_once_with(3)


def test_get_app_by_name_and_path():
    assert get_app("wc").mapf is wc_map
    assert get_app("../mrapps/indexer.so").reducef is indexer_reduce
    assert get_app("early_exit").name == "early_exit"


def test_get_app_unknown():
    with pytest.raises(ValueError, match="unknown application"):
        get_app("nosuchapp")