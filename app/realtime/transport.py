"""
Realtime Transport

One WebRTC peer connection to the hosted speech model: the microphone as
the single outbound track, the model's voice as the inbound track, and an
ordered "oai-events" data channel carrying JSON events both ways.

A transport is single-use. Every exit path ends in `close()`, which
releases the microphone, the channel, the peer connection and the speaker
exactly once.
"""

import asyncio
import json
from typing import Any, Callable, Dict, Optional

import httpx
from aiortc import RTCPeerConnection, RTCSessionDescription

from app.core.config import settings
from app.core.logger import get_logger
from app.exceptions.errors import HandshakeError
from app.realtime.events import TransportEvent, TransportEventType, parse_server_event
from app.realtime.media import AudioDevices

logger = get_logger("realtime.transport")

DATA_CHANNEL_LABEL = "oai-events"

EventHandler = Callable[[TransportEvent], None]


class RealtimeTransport:

    def __init__(
        self,
        on_event: EventHandler,
        devices: Optional[AudioDevices] = None,
        peer_connection_factory: Callable[[], Any] = RTCPeerConnection,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None
    ):
        self.on_event = on_event
        self.devices = devices or AudioDevices()
        self.peer_connection_factory = peer_connection_factory
        self.http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(timeout=settings.REALTIME_HTTP_TIMEOUT)
        )

        self.pc = None
        self.channel = None
        self.mic_track = None
        self.recorder = None
        self._recorder_task: Optional[asyncio.Task] = None
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self.channel is not None and self.channel.readyState == "open" and not self._closed

    def _emit(self, event: TransportEvent) -> None:
        if self._closed and event.type != TransportEventType.CHANNEL_CLOSED:
            return
        self.on_event(event)

    async def open(self, client_secret: str) -> None:
        """
        Acquire the microphone, build the peer connection and complete the
        SDP handshake with the ephemeral credential.

        Any failure tears everything down before the exception propagates.
        """
        if self._opened:
            raise RuntimeError("RealtimeTransport is single-use, create a new one to reconnect")
        self._opened = True

        try:
            self.mic_track = self.devices.open_microphone()

            self.pc = self.peer_connection_factory()
            self.pc.on("track", self._on_track)
            self.pc.on("connectionstatechange", self._on_connection_state_change)
            self.pc.addTrack(self.mic_track)

            self.channel = self.pc.createDataChannel(DATA_CHANNEL_LABEL, ordered=True)
            self.channel.on("open", self._on_channel_open)
            self.channel.on("message", self._on_channel_message)
            self.channel.on("close", self._on_channel_close)

            offer = await self.pc.createOffer()
            await self.pc.setLocalDescription(offer)

            answer_sdp = await self._negotiate(client_secret, self.pc.localDescription.sdp)
            if self._closed:
                raise HandshakeError("Transport closed during handshake")
            await self.pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
            logger.info("✅ WebRTC connection established")

        except Exception:
            await self.close()
            raise

    async def _negotiate(self, client_secret: str, offer_sdp: str) -> str:
        url = f"{settings.REALTIME_NEGOTIATION_URL}?model={settings.REALTIME_MODEL}"
        try:
            async with self.http_client_factory() as client:
                response = await client.post(
                    url,
                    content=offer_sdp,
                    headers={
                        "Authorization": f"Bearer {client_secret}",
                        "Content-Type": "application/sdp",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ SDP negotiation request failed: {e}")
            raise HandshakeError(f"Failed to connect to OpenAI: {e}")

        if not response.is_success:
            logger.error(f"❌ SDP negotiation rejected: {response.status_code}")
            raise HandshakeError(
                f"Failed to connect to OpenAI: {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )
        return response.text

    # peer connection / channel callbacks

    def _on_track(self, track) -> None:
        if track.kind != "audio" or self._closed:
            return
        logger.info("Received remote audio track")
        try:
            self.recorder = self.devices.open_speaker()
        except Exception as e:
            # Conversation continues without playback; transcripts still arrive
            logger.error(f"Remote audio will not be played: {e}")
            return
        self.recorder.addTrack(track)
        self._recorder_task = asyncio.ensure_future(self.recorder.start())

    def _on_connection_state_change(self) -> None:
        state = self.pc.connectionState if self.pc is not None else "closed"
        logger.debug(f"Peer connection state: {state}")
        if state == "failed" and not self._closed:
            self._emit(TransportEvent(TransportEventType.CHANNEL_CLOSED))

    def _on_channel_open(self) -> None:
        logger.info("Data channel opened")
        self._emit(TransportEvent(TransportEventType.CHANNEL_OPENED))

    def _on_channel_message(self, message) -> None:
        event = parse_server_event(message)
        if event is not None:
            logger.debug(f"Server event: {event.type.value}")
            self._emit(event)

    def _on_channel_close(self) -> None:
        logger.info("Data channel closed")
        self._emit(TransportEvent(TransportEventType.CHANNEL_CLOSED))

    # outbound

    def send(self, event: Dict[str, Any]) -> bool:
        if not self.is_open:
            logger.error("Data channel not ready")
            return False
        self.channel.send(json.dumps(event))
        return True

    def send_text(self, text: str) -> bool:
        """Inject a typed user turn and ask the model to answer it."""
        item = {
            "type": "conversation.item.create",
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": text}]
            }
        }
        if not self.send(item):
            return False
        return self.send({"type": "response.create"})

    async def close(self) -> None:
        """Release every resource this attempt acquired. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        logger.info("Disconnecting...")

        if self.mic_track is not None:
            try:
                self.mic_track.stop()
            except Exception as e:
                logger.warning(f"Failed to stop microphone track: {e}")
            self.mic_track = None

        if self.channel is not None:
            try:
                self.channel.close()
            except Exception as e:
                logger.warning(f"Failed to close data channel: {e}")
            self.channel = None

        if self.pc is not None:
            try:
                await self.pc.close()
            except Exception as e:
                logger.warning(f"Failed to close peer connection: {e}")
            self.pc = None

        if self.recorder is not None:
            try:
                if self._recorder_task is not None:
                    await self._recorder_task
                await self.recorder.stop()
            except Exception as e:
                logger.warning(f"Failed to stop speaker: {e}")
            self.recorder = None
            self._recorder_task = None
