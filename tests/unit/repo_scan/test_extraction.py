from __future__ import annotations

import pytest

from repo_scan.exceptions import StructuredExtractionError
from repo_scan.extraction import extract_json_object, find_balanced_object


@pytest.mark.unit
def test_extracts_object_wrapped_in_prose() -> None:
    text = 'Sure! Here you go: {"stage":"mvp","stage_reasoning":"works","top_recommendation":{}} Hope this helps.'

    data = extract_json_object(text)

    assert data["stage"] == "mvp"
    assert data["top_recommendation"] == {}


@pytest.mark.unit
def test_extracts_object_from_code_fence() -> None:
    text = '```json\n{"a": [1, 2, {"b": null}]}\n```'

    assert extract_json_object(text) == {"a": [1, 2, {"b": None}]}


@pytest.mark.unit
def test_braces_inside_strings_do_not_count() -> None:
    text = 'x {"msg": "use } and { freely", "q": "say \\"}\\""} trailing }'

    span = find_balanced_object(text)

    assert span == '{"msg": "use } and { freely", "q": "say \\"}\\""}'
    assert extract_json_object(text)["msg"] == "use } and { freely"


@pytest.mark.unit
def test_stray_open_brace_before_object() -> None:
    assert find_balanced_object('note { unclosed ... {"ok": true}') == '{"ok": true}'


@pytest.mark.unit
def test_no_object_reason() -> None:
    with pytest.raises(StructuredExtractionError) as exc_info:
        extract_json_object("I could not analyze this repository.")

    assert exc_info.value.reason == "no_object"


@pytest.mark.unit
def test_invalid_json_reason() -> None:
    with pytest.raises(StructuredExtractionError) as exc_info:
        extract_json_object("{stage: mvp}")

    assert exc_info.value.reason == "invalid_json"
    assert exc_info.value.detail


@pytest.mark.unit
def test_empty_text() -> None:
    with pytest.raises(StructuredExtractionError):
        extract_json_object("")
