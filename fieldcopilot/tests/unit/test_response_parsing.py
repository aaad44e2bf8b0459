from __future__ import annotations

import json

from fieldcopilot.agent.parsing import extract_json_payload, parse_response


def test_parse_plain_json_response() -> None:
    content = json.dumps(
        {
            "answer": "Replace the run capacitor.",
            "citations": [{"doc_id": "n1", "type": "note", "snippet": "cap bulged"}],
            "follow_ups": ["Check amp draw"],
        }
    )
    parsed = parse_response(content)
    assert parsed.answer == "Replace the run capacitor."
    assert parsed.citations[0]["doc_id"] == "n1"
    assert parsed.follow_ups == ["Check amp draw"]


def test_parse_fenced_json_and_camel_case_follow_ups() -> None:
    content = '```json\n{"answer": "ok", "citations": [], "followUps": ["a", 3, "b"]}\n```'
    parsed = parse_response(content)
    assert parsed.answer == "ok"
    assert parsed.follow_ups == ["a", "b"]


def test_malformed_output_falls_back_to_raw_text() -> None:
    parsed = parse_response("  The filter is clogged.  ")
    assert parsed.answer == "The filter is clogged."
    assert parsed.citations == []
    assert parsed.follow_ups == []


def test_non_object_json_falls_back_to_raw_text() -> None:
    parsed = parse_response('["not", "an", "object"]')
    assert parsed.answer == '["not", "an", "object"]'


def test_wrong_field_types_are_dropped() -> None:
    parsed = parse_response('{"answer": 42, "citations": "n1", "follow_ups": "x"}')
    assert parsed.answer == ""
    assert parsed.citations == []
    assert parsed.follow_ups == []


def test_empty_content_parses_to_empty_answer() -> None:
    assert parse_response(None).answer == ""
    assert extract_json_payload("```\n{}\n```") == "{}"
