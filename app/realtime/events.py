"""
Transport events.

Vendor messages arriving on the "oai-events" data channel are normalized
into TransportEvent values before they reach the conversation state
machine. Lifecycle events (connect, channel open/close, disconnect) are
produced locally by the transport and the orchestrator.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from app.core.logger import get_logger

logger = get_logger("realtime.events")


class TransportEventType(str, Enum):
    # lifecycle
    CONNECT_REQUESTED = "connect_requested"
    CHANNEL_OPENED = "channel_opened"
    CHANNEL_CLOSED = "channel_closed"
    CONNECT_FAILED = "connect_failed"
    DISCONNECT_REQUESTED = "disconnect_requested"
    TEXT_SENT = "text_sent"

    # provider
    SESSION_READY = "session_ready"
    SPEECH_STARTED = "speech_started"
    SPEECH_STOPPED = "speech_stopped"
    INPUT_TRANSCRIPT_FINALIZED = "input_transcript_finalized"
    INPUT_TRANSCRIPT_FAILED = "input_transcript_failed"
    OUTPUT_AUDIO_DELTA = "output_audio_delta"
    OUTPUT_TRANSCRIPT_DELTA = "output_transcript_delta"
    OUTPUT_TRANSCRIPT_DONE = "output_transcript_done"
    RESPONSE_DONE = "response_done"
    RESPONSE_FAILED = "response_failed"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class TransportEvent:
    type: TransportEventType
    text: str = ""
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


VENDOR_EVENT_TYPES = {
    "session.created": TransportEventType.SESSION_READY,
    "input_audio_buffer.speech_started": TransportEventType.SPEECH_STARTED,
    "input_audio_buffer.speech_stopped": TransportEventType.SPEECH_STOPPED,
    "conversation.item.input_audio_transcription.completed": TransportEventType.INPUT_TRANSCRIPT_FINALIZED,
    "conversation.item.input_audio_transcription.failed": TransportEventType.INPUT_TRANSCRIPT_FAILED,
    "response.audio.delta": TransportEventType.OUTPUT_AUDIO_DELTA,
    "response.audio_transcript.delta": TransportEventType.OUTPUT_TRANSCRIPT_DELTA,
    "response.audio_transcript.done": TransportEventType.OUTPUT_TRANSCRIPT_DONE,
    "response.done": TransportEventType.RESPONSE_DONE,
    "error": TransportEventType.PROVIDER_ERROR,
}


def _error_fields(error: Any):
    if not isinstance(error, dict):
        return None, None
    return error.get("code"), error.get("message")


def parse_server_event(payload: Union[str, bytes, Dict[str, Any]]) -> Optional[TransportEvent]:
    """
    Map one data-channel message onto a TransportEvent.

    Returns None for unknown event types and for payloads that are not
    JSON objects; both are logged and dropped.
    """
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Dropping unparseable channel message: {e}")
            return None
    else:
        data = payload

    if not isinstance(data, dict):
        logger.warning(f"Dropping non-object channel message: {type(data).__name__}")
        return None

    vendor_type = data.get("type")
    event_type = VENDOR_EVENT_TYPES.get(vendor_type)
    if event_type is None:
        logger.debug(f"Ignoring server event: {vendor_type}")
        return None

    if event_type == TransportEventType.INPUT_TRANSCRIPT_FINALIZED:
        return TransportEvent(event_type, text=data.get("transcript") or "", raw=data)

    if event_type == TransportEventType.OUTPUT_TRANSCRIPT_DELTA:
        return TransportEvent(event_type, text=data.get("delta") or "", raw=data)

    if event_type == TransportEventType.INPUT_TRANSCRIPT_FAILED:
        code, message = _error_fields(data.get("error"))
        return TransportEvent(event_type, error_code=code, error_message=message, raw=data)

    if event_type == TransportEventType.PROVIDER_ERROR:
        code, message = _error_fields(data.get("error"))
        return TransportEvent(event_type, error_code=code, error_message=message, raw=data)

    if event_type == TransportEventType.RESPONSE_DONE:
        response = data.get("response") or {}
        if response.get("status") == "failed":
            status_details = response.get("status_details") or {}
            code, message = _error_fields(status_details.get("error"))
            return TransportEvent(
                TransportEventType.RESPONSE_FAILED,
                error_code=code,
                error_message=message,
                raw=data
            )
        return TransportEvent(event_type, raw=data)

    return TransportEvent(event_type, raw=data)
