"""
Unit tests for extract_reply(): both worker result conventions plus strings and fallbacks.
"""

from app.services.result_extractor import NO_RESPONSE, ReplyShape, classify, extract_reply


class TestExtractReply:
    def test_none_is_no_response(self) -> None:
        assert extract_reply(None) == NO_RESPONSE

    def test_string_passes_through(self) -> None:
        assert extract_reply("hi") == "hi"
        assert extract_reply("") == ""

    def test_stage_array_with_data(self) -> None:
        assert extract_reply([{"data": {"response": "x"}}]) == "x"

    def test_stage_array_field_priority(self) -> None:
        assert extract_reply([{"data": {"reply": "c", "result": "b", "response": "a"}}]) == "a"
        assert extract_reply([{"data": {"reply": "c", "result": "b"}}]) == "b"

    def test_stage_without_data_uses_element(self) -> None:
        assert extract_reply([{"stageName": "s1", "result": "r"}, {"result": "ignored"}]) == "r"

    def test_stage_non_string_value_is_stringified(self) -> None:
        assert extract_reply([{"data": {"result": 42}}]) == "42"

    def test_stage_without_text_dumps_whole_result(self) -> None:
        assert extract_reply([{"data": {}}]) == '[{"data": {}}]'

    def test_flat_object_priority(self) -> None:
        assert extract_reply({"reply": "y"}) == "y"
        assert extract_reply({"response": "r", "result": "z"}) == "r"
        assert extract_reply({"result": "z"}) == "z"

    def test_flat_nested_response(self) -> None:
        assert extract_reply({"result": {"response": "deep"}}) == "deep"

    def test_empty_object_is_dumped(self) -> None:
        assert extract_reply({}) == "{}"

    def test_stages_take_precedence_over_flat_fields(self) -> None:
        assert classify([{"reply": "a"}]) is ReplyShape.STAGES
        assert classify({"reply": "a"}) is ReplyShape.FLAT

    def test_other_values_are_dumped(self) -> None:
        assert extract_reply(3) == "3"
        assert extract_reply(True) == "true"
        assert extract_reply([]) == "[]"
