"""
RealtimeConversation ties the pieces together for one voice conversation:
credential request, transport, state machine and session persistence.

Transport events are applied in arrival order through `dispatch`, which
runs the state machine and then the effects it returned.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Set

import cuid

from app.core.config import settings
from app.core.logger import get_logger, preview
from app.enums.session_enums import MessageSender, SessionStatus
from app.realtime.api_client import CoachApiClient
from app.realtime.events import TransportEvent, TransportEventType
from app.realtime.notifications import LoggingNotifier, Notifier
from app.realtime.session_manager import SessionLifecycleManager
from app.realtime.state_machine import (
    ConversationSnapshot,
    ConversationState,
    FinalizeMessage,
    OpenTransport,
    ReleaseTransport,
    ShowMessage,
    ShowNotice,
    UpdateCaption,
    transition,
)
from app.realtime.transport import RealtimeTransport

logger = get_logger("realtime.conversation")


@dataclass
class ConversationMessage:
    text: str
    sender: MessageSender
    id: str = field(default_factory=cuid.cuid)
    timestamp: datetime = field(default_factory=datetime.utcnow)


class RealtimeConversation:

    def __init__(
        self,
        api: CoachApiClient,
        manager: Optional[SessionLifecycleManager] = None,
        notifier: Optional[Notifier] = None,
        transport_factory: Optional[Callable[..., RealtimeTransport]] = None,
        voice: Optional[str] = None,
        on_state_change: Optional[Callable[[ConversationState], None]] = None,
        on_transcript_update: Optional[Callable[[str], None]] = None,
        on_message: Optional[Callable[[ConversationMessage], None]] = None
    ):
        self.api = api
        self.notifier = notifier or LoggingNotifier()
        self.manager = manager or SessionLifecycleManager(api, notifier=self.notifier)
        self.transport_factory = transport_factory or RealtimeTransport
        self.voice = voice or settings.REALTIME_VOICE
        self.on_state_change = on_state_change
        self.on_transcript_update = on_transcript_update
        self.on_message = on_message

        self.snapshot = ConversationSnapshot()
        self.messages: List[ConversationMessage] = []
        self.current_transcript = ""
        self.transport: Optional[RealtimeTransport] = None
        self._open_requested = False
        self._release_tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> ConversationState:
        return self.snapshot.state

    @property
    def is_connected(self) -> bool:
        return self.snapshot.connected

    # event loop side

    def dispatch(self, event: TransportEvent) -> None:
        previous = self.snapshot.state
        self.snapshot, effects = transition(self.snapshot, event)

        for effect in effects:
            if isinstance(effect, FinalizeMessage):
                self._finalize(effect.sender, effect.content)
            elif isinstance(effect, ShowMessage):
                self._show(ConversationMessage(text=effect.content, sender=effect.sender))
            elif isinstance(effect, UpdateCaption):
                self.current_transcript = effect.text
                if self.on_transcript_update:
                    self.on_transcript_update(effect.text)
            elif isinstance(effect, ShowNotice):
                self.notifier.notify(effect.notice)
            elif isinstance(effect, OpenTransport):
                self._open_requested = True
            elif isinstance(effect, ReleaseTransport):
                task = asyncio.ensure_future(self._release())
                self._release_tasks.add(task)
                task.add_done_callback(self._release_tasks.discard)

        if self.snapshot.state != previous:
            logger.debug(f"State {previous.value} -> {self.snapshot.state.value} on {event.type.value}")
            if self.on_state_change:
                self.on_state_change(self.snapshot.state)

    def _finalize(self, sender: MessageSender, content: str) -> None:
        last = self.messages[-1] if self.messages else None
        if last is not None and last.sender == sender and last.text == content:
            # Kept as a separate message; the provider should not repeat a finalize
            logger.warning(
                f"Duplicate {sender.value} message finalized in {self.manager.session_id}: {preview(content)}"
            )

        self._show(ConversationMessage(text=content, sender=sender))
        self.manager.save_message(sender, content)

    def _show(self, message: ConversationMessage) -> None:
        self.messages.append(message)
        if self.on_message:
            self.on_message(message)

    async def _release(self) -> None:
        transport = self.transport
        if transport is not None:
            await transport.close()

    # user actions

    async def start(self) -> bool:
        """Create the session record, then connect. A failed session record does not block the call."""
        await self.manager.start_session()
        return await self.connect()

    async def connect(self) -> bool:
        """
        Request a credential and open the transport.

        Failures return the machine to idle, show a "Connection Failed"
        notice and re-raise. There is no automatic reconnect.
        """
        self._open_requested = False
        self.dispatch(TransportEvent(TransportEventType.CONNECT_REQUESTED))
        if not self._open_requested:
            logger.warning(f"Connect ignored while {self.state.value}")
            return False

        transport = self.transport_factory(self.dispatch)
        self.transport = transport
        try:
            client_secret = await self.api.request_credential(self.voice)
            if self.state != ConversationState.CONNECTING:
                logger.info("Connect aborted before the handshake")
                await transport.close()
                return False
            logger.info("Got ephemeral token, setting up WebRTC...")
            await transport.open(client_secret)
        except Exception as e:
            if self.state == ConversationState.IDLE:
                # disconnect() won the race, nothing to report
                logger.info(f"Connect aborted: {e}")
                await transport.close()
                return False
            logger.error(f"❌ Connection error: {e}")
            self.dispatch(TransportEvent(
                TransportEventType.CONNECT_FAILED,
                error_message=getattr(e, "message", None) or str(e)
            ))
            await transport.close()
            raise
        return True

    async def disconnect(self) -> None:
        self.dispatch(TransportEvent(TransportEventType.DISCONNECT_REQUESTED))
        await self._release()
        if self._release_tasks:
            await asyncio.gather(*list(self._release_tasks), return_exceptions=True)
        self.current_transcript = ""

    def send_text(self, text: str) -> bool:
        """Typed fallback for the voice path."""
        if self.transport is None or not self.transport.send_text(text):
            return False
        self.dispatch(TransportEvent(TransportEventType.TEXT_SENT, text=text))
        return True

    async def stop(self, status: SessionStatus = SessionStatus.COMPLETED) -> Optional[dict]:
        """Disconnect, close the session with `status`, then summarize it."""
        await self.disconnect()
        ended = await self.manager.end_session(status)
        if ended is None:
            return None
        summarized = await self.manager.generate_summary(ended["id"])
        return summarized or ended

    async def pause(self) -> Optional[dict]:
        return await self.stop(SessionStatus.PAUSED)
