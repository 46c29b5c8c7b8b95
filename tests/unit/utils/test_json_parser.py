"""Tests for JSON extraction from free-form AI output."""

from docintel.utils.json_parser import extract_json_array, parse_json_safely


class TestParseJsonSafely:
    """Tests for parse_json_safely."""

    def test_plain_object(self):
        assert parse_json_safely('{"documentType": "report"}') == {"documentType": "report"}

    def test_markdown_fence_with_prose(self):
        """Fenced payloads are found even when surrounded by commentary."""
        text = 'Here is the analysis:\n```json\n{"purpose": "Track stock", "tags": ["ops"]}\n```\nLet me know.'

        assert parse_json_safely(text) == {"purpose": "Track stock", "tags": ["ops"]}

    def test_concatenated_objects_are_merged(self):
        """Objects emitted back to back merge, later keys winning."""
        text = '{"documentType": "notes", "purpose": "a"}\n{"purpose": "b", "tags": ["x"]}'

        assert parse_json_safely(text) == {"documentType": "notes", "purpose": "b", "tags": ["x"]}

    def test_embedded_object_with_braces_in_strings(self):
        text = 'Result: {"description": "uses {placeholders}", "hasTables": true} done'

        assert parse_json_safely(text) == {"description": "uses {placeholders}", "hasTables": True}

    def test_no_json_returns_none(self):
        assert parse_json_safely("I could not find that document.") is None
        assert parse_json_safely("") is None


class TestExtractJsonArray:
    """Tests for extract_json_array."""

    def test_array_after_prose(self):
        text = 'Scores:\n[{"filename": "a.xlsx", "score": 8}]'

        assert extract_json_array(text) == [{"filename": "a.xlsx", "score": 8}]

    def test_object_only_returns_none(self):
        assert extract_json_array('{"filename": "a.xlsx"}') is None
