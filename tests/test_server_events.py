"""
Tests for mapping data-channel messages onto transport events
"""
import json

import pytest

from app.realtime.events import TransportEventType as E, parse_server_event


class TestParseServerEvent:

    @pytest.mark.unit
    @pytest.mark.parametrize("vendor_type,expected", [
        ("session.created", E.SESSION_READY),
        ("input_audio_buffer.speech_started", E.SPEECH_STARTED),
        ("input_audio_buffer.speech_stopped", E.SPEECH_STOPPED),
        ("response.audio.delta", E.OUTPUT_AUDIO_DELTA),
        ("response.audio_transcript.done", E.OUTPUT_TRANSCRIPT_DONE),
    ])
    def test_simple_events(self, vendor_type, expected):
        event = parse_server_event(json.dumps({"type": vendor_type}))

        assert event.type == expected

    @pytest.mark.unit
    def test_input_transcript_carries_text(self):
        event = parse_server_event({
            "type": "conversation.item.input_audio_transcription.completed",
            "transcript": "I like my job",
        })

        assert event.type == E.INPUT_TRANSCRIPT_FINALIZED
        assert event.text == "I like my job"

    @pytest.mark.unit
    def test_transcript_delta_carries_token(self):
        event = parse_server_event({"type": "response.audio_transcript.delta", "delta": "Hel"})

        assert event.type == E.OUTPUT_TRANSCRIPT_DELTA
        assert event.text == "Hel"

    @pytest.mark.unit
    def test_missing_delta_is_empty_text(self):
        event = parse_server_event({"type": "response.audio_transcript.delta"})

        assert event.text == ""

    @pytest.mark.unit
    def test_failed_response_with_quota_code(self):
        event = parse_server_event({
            "type": "response.done",
            "response": {
                "status": "failed",
                "status_details": {"error": {"code": "insufficient_quota", "message": "No credits"}},
            },
        })

        assert event.type == E.RESPONSE_FAILED
        assert event.error_code == "insufficient_quota"
        assert event.error_message == "No credits"

    @pytest.mark.unit
    def test_completed_response(self):
        event = parse_server_event({"type": "response.done", "response": {"status": "completed"}})

        assert event.type == E.RESPONSE_DONE
        assert event.error_code is None

    @pytest.mark.unit
    def test_provider_error(self):
        event = parse_server_event({
            "type": "error",
            "error": {"code": "rate_limit_exceeded", "message": "Slow down"},
        })

        assert event.type == E.PROVIDER_ERROR
        assert event.error_code == "rate_limit_exceeded"

    @pytest.mark.unit
    def test_transcription_failure(self):
        event = parse_server_event({
            "type": "conversation.item.input_audio_transcription.failed",
            "error": {"message": "429 Too Many Requests"},
        })

        assert event.type == E.INPUT_TRANSCRIPT_FAILED
        assert event.error_code is None
        assert event.error_message == "429 Too Many Requests"

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", [
        '{"type": "rate_limits.updated"}',
        "not json",
        "[1, 2, 3]",
        b"\xff\xfe",
    ])
    def test_unknown_or_invalid_payloads_are_dropped(self, payload):
        assert parse_server_event(payload) is None
