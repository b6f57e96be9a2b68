"""Tests for the streaming frame rewriter and reasoning merge."""

import json

import pytest

from nim_proxy.core.rewriter import (
    DONE_EVENT,
    FrameRewriter,
    ReasoningMergeState,
    encode_data_event,
    finalize_delta,
    get_path,
    merge_reasoning,
)
from nim_proxy.core.sse import DataFrame, RawFrame, TerminationMarker


def _chunk(**delta):
    return {"id": "c1", "choices": [{"index": 0, "delta": delta}]}


def _decode(event: bytes):
    text = event.decode("utf-8")
    assert text.startswith("data: ") and text.endswith("\n\n")
    return json.loads(text[len("data: "):])


def _contents(rewriter, deltas):
    out = []
    for delta in deltas:
        (event,) = rewriter.rewrite(DataFrame(_chunk(**delta)))
        out.append(_decode(event)["choices"][0]["delta"]["content"])
    return out


class TestMergeReasoning:
    def test_reasoning_then_content(self):
        state = ReasoningMergeState()
        assert merge_reasoning("A", None, state) == "<think>\nA"
        assert state.open is True
        assert merge_reasoning("B", None, state) == "B"
        assert merge_reasoning(None, "C", state) == "</think>\n\nC"
        assert state.open is False

    def test_reasoning_and_content_in_one_delta(self):
        state = ReasoningMergeState()
        assert merge_reasoning("R", "C", state) == "<think>\nR</think>\n\nC"
        assert state.open is False

    def test_content_only_is_untouched(self):
        state = ReasoningMergeState()
        assert merge_reasoning(None, "hello", state) == "hello"
        assert merge_reasoning("", "", state) == ""
        assert state.open is False

    def test_reopens_after_close(self):
        state = ReasoningMergeState()
        merge_reasoning("A", "B", state)
        assert merge_reasoning("again", None, state) == "<think>\nagain"


class TestFrameRewriterShowReasoning:
    def test_merged_text_sequence(self):
        rewriter = FrameRewriter(show_reasoning=True)
        contents = _contents(
            rewriter,
            [{"reasoning_content": "A"}, {"reasoning_content": "B"}, {"content": "C"}],
        )
        assert contents == ["<think>\nA", "B", "</think>\n\nC"]
        assert "".join(contents) == "<think>\nAB</think>\n\nC"

    def test_reasoning_field_is_removed(self):
        rewriter = FrameRewriter(show_reasoning=True)
        (event,) = rewriter.rewrite(DataFrame(_chunk(reasoning_content="A")))
        delta = _decode(event)["choices"][0]["delta"]
        assert "reasoning_content" not in delta

    def test_empty_delta_gets_empty_content(self):
        rewriter = FrameRewriter(show_reasoning=True)
        (event,) = rewriter.rewrite(DataFrame(_chunk(role="assistant")))
        assert _decode(event)["choices"][0]["delta"] == {"role": "assistant", "content": ""}

    def test_state_is_per_rewriter(self):
        first = FrameRewriter(show_reasoning=True)
        second = FrameRewriter(show_reasoning=True)
        _contents(first, [{"reasoning_content": "A"}])
        assert _contents(second, [{"content": "C"}]) == ["C"]


class TestFrameRewriterHideReasoning:
    def test_reasoning_is_stripped(self):
        rewriter = FrameRewriter(show_reasoning=False)
        contents = _contents(
            rewriter,
            [{"reasoning_content": "A"}, {"reasoning_content": "B"}, {"content": "C"}],
        )
        assert contents == ["", "", "C"]

    def test_other_fields_preserved(self):
        rewriter = FrameRewriter()
        payload = {
            "id": "x",
            "model": "upstream/model",
            "choices": [
                {"index": 0, "delta": {"content": "hi", "tool_calls": [{"id": "t"}]},
                 "finish_reason": None},
            ],
        }
        (event,) = rewriter.rewrite(DataFrame(payload))
        assert _decode(event) == {
            "id": "x",
            "model": "upstream/model",
            "choices": [
                {"index": 0, "delta": {"content": "hi", "tool_calls": [{"id": "t"}]},
                 "finish_reason": None},
            ],
        }

    def test_reasoning_removed_from_every_choice(self):
        rewriter = FrameRewriter()
        payload = {
            "choices": [
                {"delta": {"reasoning_content": "a", "content": "x"}},
                {"delta": {"reasoning_content": "b"}},
            ]
        }
        (event,) = rewriter.rewrite(DataFrame(payload))
        choices = _decode(event)["choices"]
        assert choices == [{"delta": {"content": "x"}}, {"delta": {"content": ""}}]


class TestFrameRewriterPassthrough:
    def test_done_marker(self):
        assert FrameRewriter().rewrite(TerminationMarker()) == [b"data: [DONE]\n\n"]
        assert DONE_EVENT == b"data: [DONE]\n\n"

    def test_raw_line_forwarded_with_single_newline(self):
        assert FrameRewriter().rewrite(RawFrame("data: oops")) == [b"data: oops\n"]

    @pytest.mark.parametrize(
        "payload",
        [{"usage": {"total_tokens": 3}}, {"choices": []}, {"choices": "x"}, [1, 2], "text"],
    )
    def test_payloads_without_first_delta_are_unchanged(self, payload):
        (event,) = FrameRewriter(show_reasoning=True).rewrite(DataFrame(payload))
        assert _decode(event) == payload

    def test_non_ascii_is_not_escaped(self):
        event = encode_data_event({"content": "ü"})
        assert event == 'data: {"content":"ü"}\n\n'.encode("utf-8")


class TestGetPath:
    def test_nested_lookup(self):
        assert get_path({"a": [{"b": 1}]}, "a", 0, "b") == 1

    def test_missing_steps_return_none(self):
        assert get_path({"a": []}, "a", 0, "b") is None
        assert get_path({"a": {"0": 1}}, "a", 0) is None
        assert get_path("text", "a") is None


class TestFinalizeDelta:
    def test_removes_reasoning_and_defaults_content(self):
        delta = {"role": "assistant", "reasoning_content": "r", "content": None}
        assert finalize_delta(delta) == {"role": "assistant", "content": ""}

    def test_keeps_existing_content(self):
        assert finalize_delta({"content": "x"}) == {"content": "x"}
