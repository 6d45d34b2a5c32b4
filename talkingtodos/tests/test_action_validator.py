from __future__ import annotations

import json

import pytest

from talkingtodos.app.voice import ActionType, ActionValidator, DeskContext, ErrorKind, build_snapshot
from talkingtodos.app.voice.validator import coerce_data, repair_data


@pytest.fixture
def snapshot():
    return build_snapshot(
        {"groceries": {"name": "Groceries"}, "books": {"name": "Books"}},
        {"t1": {"text": "Milk", "list": "groceries"}, "t9": {"text": "Lost", "list": "deleted"}},
    )


validator = ActionValidator()


class TestTotality:
    @pytest.mark.parametrize(
        "raw",
        [None, 42, "navigate", ["show_list"], {"type": None}, {"type": 7, "target": {}}, {"target": "x"}],
    )
    def test_never_raises(self, raw, snapshot):
        result = validator.validate(raw, snapshot)
        assert result.ok is False
        assert result.failure.kind in (ErrorKind.MALFORMED_RESPONSE, ErrorKind.UNSUPPORTED_ACTION_TYPE)

    def test_non_mapping_is_malformed(self, snapshot):
        assert validator.validate("nope", snapshot).failure.kind is ErrorKind.MALFORMED_RESPONSE

    def test_unknown_type_is_unsupported(self, snapshot):
        result = validator.validate({"type": "launch_rocket", "target": "x"}, snapshot)
        assert result.failure.kind is ErrorKind.UNSUPPORTED_ACTION_TYPE
        assert result.failure.user_message


class TestTargets:
    def test_navigate_requires_target(self, snapshot):
        assert validator.validate({"type": "navigate", "target": " "}, snapshot).failure.kind is ErrorKind.UNRESOLVED_TARGET
        ok = validator.validate({"type": "navigate", "target": "/lists"}, snapshot)
        assert ok.ok and ok.value.target == "/lists"

    def test_show_list_known(self, snapshot):
        result = validator.validate({"type": "show_list", "target": "groceries"}, snapshot)
        assert result.ok
        assert result.value.type is ActionType.SHOW_LIST

    def test_stale_show_list_target_is_unresolved(self, snapshot):
        result = validator.validate({"type": "show_list", "target": "deleted"}, snapshot)
        assert result.ok is False
        assert result.failure.kind is ErrorKind.UNRESOLVED_TARGET

    def test_show_todo_resolves_owning_list(self, snapshot):
        result = validator.validate({"type": "show_todo", "target": "t1"}, snapshot)
        assert result.ok
        assert result.value.target == "groceries"
        assert result.value.data["todoId"] == "t1"

    def test_show_todo_accepts_list_id(self, snapshot):
        assert validator.validate({"type": "show_todo", "target": "books"}, snapshot).value.target == "books"

    def test_show_todo_dangling_is_unresolved(self, snapshot):
        assert validator.validate({"type": "show_todo", "target": "t9"}, snapshot).failure.kind is ErrorKind.UNRESOLVED_TARGET


class TestCreate:
    def test_create_with_json_string_data(self, snapshot):
        raw = {"type": "create_todo", "target": "groceries", "data": json.dumps({"texts": ["eggs", "bread"]})}
        result = validator.validate(raw, snapshot)
        assert result.ok
        assert result.value.phrases == ["eggs", "bread"]

    def test_create_without_phrases_is_empty_request(self, snapshot):
        raw = {"type": "create_todo", "target": "groceries", "data": {"texts": ["  ", ""]}}
        assert validator.validate(raw, snapshot).failure.kind is ErrorKind.EMPTY_CREATE_REQUEST

    def test_create_unknown_list(self, snapshot):
        raw = {"type": "create_todo", "target": "nowhere", "data": {"text": "eggs"}}
        assert validator.validate(raw, snapshot).failure.kind is ErrorKind.UNRESOLVED_TARGET

    def test_create_falls_back_to_desk_primary(self, snapshot):
        raw = {"type": "create_todo", "target": "", "data": "eggs"}
        result = validator.validate(raw, snapshot, DeskContext(primary_list_id="books"))
        assert result.ok
        assert result.value.target == "books"
        assert result.value.phrases == ["eggs"]

    def test_create_without_target_or_desk(self, snapshot):
        raw = {"type": "create_todo", "target": "", "data": {"text": "eggs"}}
        assert validator.validate(raw, snapshot).failure.kind is ErrorKind.UNRESOLVED_TARGET


def test_unimplemented_types_pass_validation(snapshot):
    for name in ("update_todo", "delete_todo", "create_list", "add_todo"):
        result = validator.validate({"type": name, "target": "t1"}, snapshot)
        assert result.ok, name


def test_repair_data_shapes():
    assert repair_data(None) == {}
    assert repair_data('{"a": 1}') == {"a": 1}
    assert repair_data('["x", "y"]') == {"texts": ["x", "y"]}
    assert repair_data("buy milk") == {"text": "buy milk"}
    assert repair_data(["x"]) == {"texts": ["x"]}
    assert repair_data(12) == {}


def test_coerce_numeric_and_done():
    coerced = coerce_data({"number": "42", "amount": "1,250.50", "fiveStarRating": "lots", "done": "yes", "texts": "one"})
    assert coerced["number"] == 42
    assert coerced["amount"] == 1250.5
    assert coerced["fiveStarRating"] == 0
    assert coerced["done"] is True
    assert coerced["texts"] == ["one"]
