import datetime
from pathlib import Path

import pytest

from relay_automation.errors import OutputNotFoundError, ParameterTypeError
from relay_automation.parameters import (
    action_output,
    coerce_bool,
    coerce_duration,
    coerce_int,
    coerce_mapping,
    coerce_string,
    coerce_string_list,
    parse_duration,
    resolve_as,
    split_string_list,
    static,
)
from relay_automation.store import ResultStore


@pytest.mark.parametrize(
    "text, expected",
    [
        ("web,db", ["web", "db"]),
        ("web db redis", ["web", "db", "redis"]),
        ("single", ["single"]),
        (" web , db ,", ["web", "db"]),
        ("", []),
    ],
)
def test_split_string_list(text, expected):
    assert split_string_list(text) == expected


def test_string_list_accepts_sequences_and_strings():
    assert coerce_string_list(["a", "b"], "services") == ["a", "b"]
    assert coerce_string_list(("a",), "services") == ["a"]
    assert coerce_string_list("a,b", "services") == ["a", "b"]


def test_string_list_rejects_other_kinds():
    with pytest.raises(ParameterTypeError) as info:
        coerce_string_list(42, "services")
    assert str(info.value) == "services parameter is not a string or list of strings, got int"
    with pytest.raises(ParameterTypeError, match="list containing int"):
        coerce_string_list(["a", 1], "services")


def test_string_rejects_numbers():
    with pytest.raises(ParameterTypeError) as info:
        coerce_string(5, "working_dir")
    assert str(info.value) == "working_dir parameter is not a string, got int"
    assert coerce_string(Path("/tmp"), "working_dir") == "/tmp"


@pytest.mark.parametrize("value, expected", [(True, True), ("yes", True), ("off", False), (0, False)])
def test_bool_coercion(value, expected):
    assert coerce_bool(value, "all") is expected


def test_bool_rejects_unknown_string():
    with pytest.raises(ParameterTypeError, match="all parameter is not a bool"):
        coerce_bool("maybe", "all")


def test_int_coercion():
    assert coerce_int("12", "count") == 12
    with pytest.raises(ParameterTypeError):
        coerce_int(True, "count")
    with pytest.raises(ParameterTypeError):
        coerce_int("twelve", "count")


def test_duration_parsing():
    assert parse_duration("1h30m") == 5400
    assert parse_duration("500ms") == pytest.approx(0.5)
    assert parse_duration("2") == 2
    assert coerce_duration(datetime.timedelta(seconds=3), "duration") == 3
    with pytest.raises(ValueError):
        parse_duration("soon")
    with pytest.raises(ParameterTypeError, match="negative"):
        coerce_duration(-1, "duration")


def test_mapping_coercion():
    assert coerce_mapping({"a": 1}, "env") == {"a": 1}
    with pytest.raises(ParameterTypeError, match="env parameter is not a map, got list"):
        coerce_mapping(["a"], "env")


def test_resolve_as_tags_resolution_error_with_parameter_name():
    with pytest.raises(OutputNotFoundError) as info:
        resolve_as(action_output("ghost", "dir"), ResultStore(), "string", "working_dir")
    assert info.value.parameter == "working_dir"


def test_resolve_as_coerces_resolved_values():
    store = ResultStore()
    store.store_action_output("ps", {"running": "web db"})
    assert resolve_as(action_output("ps", "running"), store, "string_list", "services") == ["web", "db"]
    assert resolve_as(static("true"), None, "bool", "all") is True


def test_resolve_as_unknown_kind():
    with pytest.raises(ValueError):
        resolve_as(static(1), None, "complex", "x")
