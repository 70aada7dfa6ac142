from __future__ import annotations

import logging

from bugsnag_flatten import flatten, stringify


def test_flatten_nested_mapping_uses_dotted_paths():
    assert flatten({"a": {"b": {"c": 1}}}) == {"a.b.c": "1"}


def test_flatten_keeps_depth_first_key_order():
    event = {
        "id": "5f1",
        "error": {"class": "RuntimeError", "message": "boom"},
        "severity": "error",
    }

    flat = flatten(event)

    assert list(flat) == ["id", "error.class", "error.message", "severity"]
    assert flat["error.class"] == "RuntimeError"


def test_flatten_lists_use_index_keys():
    event = {"exceptions": [{"errorClass": "A"}, {"errorClass": "B"}], "tags": ["x", "y"]}

    assert flatten(event) == {
        "exceptions.0.errorClass": "A",
        "exceptions.1.errorClass": "B",
        "tags.0": "x",
        "tags.1": "y",
    }


def test_flatten_empty_containers_contribute_nothing():
    assert flatten({}) == {}
    assert flatten({"meta": {}, "tags": [], "id": 7}) == {"id": "7"}


def test_flatten_top_level_scalar():
    assert flatten(42) == {"": "42"}


def test_stringify_canonical_rule():
    assert stringify("text") == "text"
    assert stringify(True) == "true"
    assert stringify(False) == "false"
    assert stringify(None) == ""
    assert stringify(0) == "0"
    assert stringify(-12) == "-12"
    assert stringify(1.0) == "1.0"
    assert stringify(2.50) == "2.5"
    assert stringify(1e-07) == "1e-07"


def test_flatten_stringifies_leaves():
    assert flatten({"unhandled": True, "user": None, "ratio": 0.5}) == {
        "unhandled": "true",
        "user": "",
        "ratio": "0.5",
    }


def test_flatten_collision_last_write_wins_and_is_reported(caplog):
    seen = []

    with caplog.at_level(logging.WARNING, logger="bugsnag_flatten"):
        flat = flatten(
            {"a.b": "first", "a": {"b": "second"}},
            on_collision=lambda key, old, new: seen.append((key, old, new)),
        )

    assert flat == {"a.b": "second"}
    assert seen == [("a.b", "first", "second")]
    assert "collides" in caplog.text


def test_flatten_without_collisions_logs_nothing(caplog):
    with caplog.at_level(logging.WARNING, logger="bugsnag_flatten"):
        flatten({"a": {"b": 1}, "c": 2})

    assert caplog.records == []
