from __future__ import annotations

from types import SimpleNamespace

from nano_agent.mcp_client.schema import normalize_content, normalize_tool_description, normalize_tool_schema


def test_schema_is_forced_to_object_with_properties() -> None:
    assert normalize_tool_schema(None) == {"type": "object", "properties": {}}
    assert normalize_tool_schema({"type": "array", "properties": [], "required": "q"}) == {
        "type": "object",
        "properties": {},
    }

    kept = normalize_tool_schema({"properties": {"q": {"type": "string"}}, "required": ["q"]})
    assert kept == {"type": "object", "properties": {"q": {"type": "string"}}, "required": ["q"]}


def test_description_whitespace_collapsed() -> None:
    assert normalize_tool_description("  a\n\n b\tc ") == "a b c"
    assert normalize_tool_description(None) == ""


def test_content_flattening() -> None:
    assert normalize_content(None) == ""
    assert normalize_content("plain") == "plain"
    assert normalize_content([{"type": "text", "text": "x"}, {"type": "image", "data": "AA=="}]) == (
        'x\n{"type": "image", "data": "AA=="}'
    )
    assert normalize_content([SimpleNamespace(text="a"), SimpleNamespace(text="b")]) == "a\nb"
