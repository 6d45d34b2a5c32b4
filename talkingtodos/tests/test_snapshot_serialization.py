from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest

from talkingtodos.app.voice.snapshot import (
    EMPTY_CONTEXT,
    build_context,
    build_snapshot,
    serialize_snapshot,
    xml_escape,
)


def test_empty_store_yields_empty_marker():
    assert build_context({}, {}) == EMPTY_CONTEXT
    assert build_context(None, None) == "<lists></lists>"


def test_todos_without_lists_still_empty_marker():
    assert build_context({}, {"t1": {"text": "orphan", "list": "gone"}}) == EMPTY_CONTEXT


def test_reserved_characters_are_escaped():
    lists = {"L1": {"name": "Tom & Jerry's <list>", "purpose": 'say "hi"'}}
    out = build_context(lists, {})

    assert "Tom &amp; Jerry&apos;s &lt;list&gt;" in out
    assert "say &quot;hi&quot;" in out
    assert "Tom & Jerry" not in out


def test_identifier_attributes_are_escaped():
    lists = {'a"b': {"name": "x"}}
    out = build_context(lists, {"<t>": {"text": "y", "list": 'a"b'}})

    assert '<list id="a&quot;b">' in out
    assert '<todo id="&lt;t&gt;">' in out


def test_escape_covers_all_five_characters():
    assert xml_escape("<>&'\"") == "&lt;&gt;&amp;&apos;&quot;"


def test_serialization_is_idempotent():
    lists = {"L1": {"name": "Groceries", "type": "Check"}, "L2": {"name": "Books"}}
    todos = {"t1": {"text": "Milk", "done": False, "list": "L1"}}
    snapshot = build_snapshot(lists, todos)

    assert serialize_snapshot(snapshot) == serialize_snapshot(snapshot)
    assert build_context(lists, todos) == build_context(lists, todos)


def test_dangling_todo_is_omitted_and_not_deleted():
    lists = {"L1": {"name": "Groceries"}}
    todos = {
        "t1": {"text": "Milk", "list": "L1"},
        "t2": {"text": "Ghost", "list": "L9"},
    }
    snapshot = build_snapshot(lists, todos)
    out = serialize_snapshot(snapshot)

    assert "Milk" in out
    assert "Ghost" not in out
    assert "t2" in snapshot.todos
    assert "t2" in todos


def test_todos_nest_under_their_list():
    lists = {"L1": {"name": "A"}, "L2": {"name": "B"}}
    todos = {"t1": {"text": "one", "list": "L2"}}
    out = build_context(lists, todos)

    l2 = out.index('<list id="L2">')
    assert out.index('<todo id="t1">') > l2
    assert out.index('<todo id="t1">') > out.index('<list id="L1">')


def test_empty_and_missing_values_are_skipped():
    out = build_context({"L1": {"name": "A", "purpose": "", "icon": None}}, {})

    assert "<name>A</name>" in out
    assert "<purpose>" not in out
    assert "<icon>" not in out


def test_keys_that_are_not_element_names_are_skipped():
    lists = {"L1": {"name": "A", "due date": "x", "a<b": "y", "R&D": "z", "2nd": "w", "sub-title": "ok"}}
    todos = {"t1": {"text": "Milk", "list": "L1", "bad key": "v"}}
    out = build_context(lists, todos)

    root = ET.fromstring(out)
    list_el = root[0]
    assert list_el.find("name").text == "A"
    assert list_el.find("sub-title").text == "ok"
    assert [child.tag for child in list_el.find("todo")] == ["text"]
    for fragment in ("due date", "a<b", "R&D", "2nd", "bad key"):
        assert fragment not in out


def test_large_code_field_excluded():
    out = build_context({"L1": {"name": "A", "code": "<script>big</script>"}}, {})

    assert "<code>" not in out
    assert "big" not in out


def test_scalars_render_naturally():
    todos = {"t1": {"text": "x", "done": True, "amount": 3.0, "number": 2.5, "list": "L1"}}
    out = build_context({"L1": {"name": "A"}}, todos)

    assert "<done>true</done>" in out
    assert "<amount>3</amount>" in out
    assert "<number>2.5</number>" in out
    assert "<list>" not in out


def test_snapshot_is_read_only_copy():
    lists = {"L1": {"name": "A", "tags": ["x"]}}
    snapshot = build_snapshot(lists, {})
    lists["L1"]["name"] = "changed"

    assert snapshot.lists["L1"]["name"] == "A"
    with pytest.raises(TypeError):
        snapshot.lists["L1"]["name"] = "B"  # type: ignore[index]
    assert snapshot.lists["L1"]["tags"] == ("x",)


def test_snapshot_lookups():
    snapshot = build_snapshot({"L1": {"name": "A"}}, {"t1": {"text": "x", "list": "L1"}, "t2": {"text": "y", "list": "L5"}})

    assert snapshot.has_list("L1")
    assert not snapshot.has_list(None)
    assert snapshot.list_for_todo("t1") == "L1"
    assert snapshot.list_for_todo("t2") is None
    assert [todo_id for todo_id, _ in snapshot.todos_for_list("L1")] == ["t1"]
