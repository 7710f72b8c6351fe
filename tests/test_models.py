"""Tests for configuration, tool-call models and tool declarations."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from tutorkit.models.config import SessionConfig, SilenceConfig, ToolConfig, TurnDetectionConfig
from tutorkit.models.enums import ToolCallShape
from tutorkit.models.tool_call import ToolCallRequest, ToolCallResult
from tutorkit.tools.declarations import MEMORY_TOOLS, TUTOR_TOOLS, VIDEO_TOOLS


class TestConfig:
    def test_defaults(self) -> None:
        config = SessionConfig()
        assert config.barge_in is False
        assert config.tools.post_speech_delay == 2.0
        assert config.tools.max_speech_wait == 60.0
        assert config.silence.timeout == 3.0
        assert config.capture.frame_ms == 170
        assert len(config.silence.prompts) == 6

    def test_silence_prompts_required(self) -> None:
        with pytest.raises(ValidationError):
            SilenceConfig(prompts=[])

    def test_threshold_bounds(self) -> None:
        with pytest.raises(ValidationError):
            TurnDetectionConfig(threshold=1.5)

    def test_poll_interval_positive(self) -> None:
        with pytest.raises(ValidationError):
            ToolConfig(speech_poll_interval=0)

    def test_prompt_template_formats(self) -> None:
        config = SilenceConfig()
        assert "Any questions?" in config.prompt_template.format(prompt="Any questions?")


class TestToolCallModels:
    def test_from_raw_mapping_arguments(self) -> None:
        request = ToolCallRequest.from_raw("seek_video", "c1", {"seconds": 3}, ToolCallShape.BATCH)
        assert request is not None
        assert json.loads(request.args_json) == {"seconds": 3}

    def test_from_raw_empty_string_arguments(self) -> None:
        request = ToolCallRequest.from_raw("play_video", "c1", "", ToolCallShape.OUTPUT_ITEM)
        assert request is not None
        assert request.args_json == "{}"

    @pytest.mark.parametrize(("name", "call_id"), [(None, "c1"), ("x", None), ("", "c1"), ("x", 7)])
    def test_from_raw_rejects_missing_fields(self, name, call_id) -> None:
        assert ToolCallRequest.from_raw(name, call_id, None, ToolCallShape.BATCH) is None

    def test_result_output(self) -> None:
        assert json.loads(ToolCallResult.failure("nope").to_output()) == {
            "ok": False,
            "message": "nope",
        }


class TestDeclarations:
    def test_tool_sets(self) -> None:
        assert len(VIDEO_TOOLS) == 6
        assert len(MEMORY_TOOLS) == 2
        assert [t.name for t in TUTOR_TOOLS] == [
            "play_video",
            "pause_video",
            "restart_video",
            "seek_video",
            "seek_backward",
            "seek_forward",
            "save_student_name",
            "save_emotional_observation",
        ]

    def test_schemas_are_objects(self) -> None:
        for tool in TUTOR_TOOLS:
            schema = tool.to_dict()["parameters"]
            assert schema["type"] == "object"
            assert set(schema["required"]) <= set(schema["properties"])
