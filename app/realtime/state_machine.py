"""
Conversation state machine.

`transition(snapshot, event)` is pure: it returns the next snapshot plus
the effects the caller must run (persist a message, open or release the
transport, update the live caption, show a notice). Nothing here touches
the network, so every path is testable by feeding events.

    idle -> connecting -> listening <-> thinking <-> speaking -> idle
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Tuple, Union

from app.enums.session_enums import MessageSender
from app.realtime.events import TransportEvent, TransportEventType as E
from app.realtime.notifications import (
    Notice,
    TRANSCRIPTION_RATE_LIMIT_NOTICE,
    categorize_error,
    connect_failed_notice,
    is_rate_limited_transcription,
)

GREETING = (
    "Hi! I'm your AI conversation partner for this feedback session. Before we start, "
    "a few quick things: You can speak naturally like we're having coffee. If you need a "
    "break, just say \"pause\" and I'll remember where we left off. Your responses are "
    "private and anonymous. Sound good?"
)


class ConversationState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


CONNECTED_STATES = frozenset({
    ConversationState.LISTENING,
    ConversationState.THINKING,
    ConversationState.SPEAKING,
})


@dataclass(frozen=True)
class ConversationSnapshot:
    state: ConversationState = ConversationState.IDLE
    buffer: str = ""
    connected: bool = False


# Effects

@dataclass(frozen=True)
class OpenTransport:
    pass


@dataclass(frozen=True)
class ReleaseTransport:
    pass


@dataclass(frozen=True)
class FinalizeMessage:
    sender: MessageSender
    content: str


@dataclass(frozen=True)
class ShowMessage:
    """Shown to the user but never stored, like the local greeting."""
    sender: MessageSender
    content: str


@dataclass(frozen=True)
class UpdateCaption:
    text: str


@dataclass(frozen=True)
class ShowNotice:
    notice: Notice


Effect = Union[OpenTransport, ReleaseTransport, FinalizeMessage, ShowMessage, UpdateCaption, ShowNotice]
Result = Tuple[ConversationSnapshot, Tuple[Effect, ...]]

_IDLE = ConversationSnapshot()


def _unchanged(snapshot: ConversationSnapshot) -> Result:
    return snapshot, ()


def _to_idle(snapshot: ConversationSnapshot, *extra: Effect) -> Result:
    if snapshot.state == ConversationState.IDLE:
        return _unchanged(snapshot)
    return _IDLE, (ReleaseTransport(), UpdateCaption("")) + extra


def transition(snapshot: ConversationSnapshot, event: TransportEvent) -> Result:
    """
    Apply one transport event.

    Events that are not enabled in the current state leave the snapshot
    untouched and produce no effects. A finalized message is always the
    first effect returned, ahead of any buffer reset, so the caller can
    hand it to storage before the next event is processed.
    """
    state = snapshot.state
    connected = state in CONNECTED_STATES

    if event.type == E.CONNECT_REQUESTED:
        if state != ConversationState.IDLE:
            return _unchanged(snapshot)
        return ConversationSnapshot(state=ConversationState.CONNECTING), (OpenTransport(),)

    if event.type == E.CHANNEL_OPENED:
        if state != ConversationState.CONNECTING:
            return _unchanged(snapshot)
        return (
            ConversationSnapshot(state=ConversationState.LISTENING, connected=True),
            (ShowMessage(MessageSender.AI, GREETING),)
        )

    if event.type in (E.CHANNEL_CLOSED, E.DISCONNECT_REQUESTED):
        return _to_idle(snapshot)

    if event.type == E.CONNECT_FAILED:
        return _to_idle(snapshot, ShowNotice(connect_failed_notice(event.error_message)))

    if event.type in (E.RESPONSE_FAILED, E.PROVIDER_ERROR):
        notice = ShowNotice(categorize_error(
            event.error_code,
            event.error_message,
            response_failed=event.type == E.RESPONSE_FAILED
        ))
        if not connected:
            return snapshot, (notice,)
        # partial AI text from a failed response is never finalized
        return (
            replace(snapshot, state=ConversationState.LISTENING, buffer=""),
            (notice, UpdateCaption(""))
        )

    if event.type == E.INPUT_TRANSCRIPT_FAILED:
        if is_rate_limited_transcription(event.error_code, event.error_message):
            return snapshot, (ShowNotice(TRANSCRIPTION_RATE_LIMIT_NOTICE),)
        return _unchanged(snapshot)

    # Everything below needs an open channel
    if not connected:
        return _unchanged(snapshot)

    if event.type == E.SPEECH_STARTED:
        return (
            replace(snapshot, state=ConversationState.LISTENING, buffer=""),
            (UpdateCaption(""),)
        )

    if event.type == E.SPEECH_STOPPED:
        if state != ConversationState.LISTENING:
            return _unchanged(snapshot)
        return replace(snapshot, state=ConversationState.THINKING), ()

    if event.type == E.INPUT_TRANSCRIPT_FINALIZED:
        effects = (FinalizeMessage(MessageSender.USER, event.text),) if event.text.strip() else ()
        if state == ConversationState.SPEAKING:
            # Late transcript of the user's turn; the AI reply keeps streaming
            return snapshot, effects
        return replace(snapshot, state=ConversationState.THINKING, buffer=""), effects

    if event.type == E.OUTPUT_TRANSCRIPT_DELTA:
        buffer = snapshot.buffer + event.text
        return (
            replace(snapshot, state=ConversationState.SPEAKING, buffer=buffer),
            (UpdateCaption(buffer),)
        )

    if event.type == E.OUTPUT_AUDIO_DELTA:
        if state == ConversationState.SPEAKING:
            return _unchanged(snapshot)
        return replace(snapshot, state=ConversationState.SPEAKING), ()

    if event.type == E.OUTPUT_TRANSCRIPT_DONE:
        effects = ()
        if snapshot.buffer:
            effects = (FinalizeMessage(MessageSender.AI, snapshot.buffer),)
        return (
            replace(snapshot, state=ConversationState.LISTENING, buffer=""),
            effects + (UpdateCaption(""),)
        )

    if event.type == E.RESPONSE_DONE:
        return replace(snapshot, state=ConversationState.LISTENING), ()

    if event.type == E.TEXT_SENT:
        if not event.text.strip():
            return _unchanged(snapshot)
        return snapshot, (FinalizeMessage(MessageSender.USER, event.text),)

    # SESSION_READY and anything else carry no transition
    return _unchanged(snapshot)
