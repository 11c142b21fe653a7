"""
Tests for the WebRTC transport with fake peer connection and devices
"""
import json
from types import SimpleNamespace

import httpx
import pytest

from app.core.config import settings
from app.exceptions.errors import HandshakeError, MediaAcquisitionError
from app.realtime.events import TransportEventType as E
from app.realtime.transport import DATA_CHANNEL_LABEL, RealtimeTransport


ANSWER_SDP = "v=0\r\no=- answer\r\n"
OFFER_SDP = "v=0\r\no=- offer\r\n"


class FakeEmitter:

    def __init__(self):
        self.handlers = {}

    def on(self, event, handler):
        self.handlers[event] = handler

    def fire(self, event, *args):
        self.handlers[event](*args)


class FakeChannel(FakeEmitter):

    def __init__(self, log, label, ordered):
        super().__init__()
        self.log = log
        self.label = label
        self.ordered = ordered
        self.readyState = "connecting"
        self.sent = []

    def send(self, data):
        self.sent.append(json.loads(data))

    def close(self):
        self.log.append("channel.close")
        self.readyState = "closed"


class FakePeerConnection(FakeEmitter):

    def __init__(self, log):
        super().__init__()
        self.log = log
        self.tracks = []
        self.channel = None
        self.localDescription = None
        self.remoteDescription = None
        self.connectionState = "new"

    def addTrack(self, track):
        self.tracks.append(track)

    def createDataChannel(self, label, ordered=True):
        self.channel = FakeChannel(self.log, label, ordered)
        return self.channel

    async def createOffer(self):
        return SimpleNamespace(sdp=OFFER_SDP, type="offer")

    async def setLocalDescription(self, description):
        self.localDescription = description

    async def setRemoteDescription(self, description):
        self.remoteDescription = description

    async def close(self):
        self.log.append("pc.close")
        self.connectionState = "closed"


class FakeTrack:

    def __init__(self, log, kind="audio"):
        self.log = log
        self.kind = kind

    def stop(self):
        self.log.append("mic.stop")


class FakeRecorder:

    def __init__(self, log):
        self.log = log
        self.tracks = []

    def addTrack(self, track):
        self.tracks.append(track)

    async def start(self):
        self.log.append("speaker.start")

    async def stop(self):
        self.log.append("speaker.stop")


class FakeDevices:

    def __init__(self, log, mic_error=None):
        self.log = log
        self.mic_error = mic_error
        self.recorder = None

    def open_microphone(self):
        if self.mic_error:
            raise self.mic_error
        return FakeTrack(self.log)

    def open_speaker(self):
        self.recorder = FakeRecorder(self.log)
        return self.recorder


class Harness:

    def __init__(self, status_code=201, body=ANSWER_SDP, mic_error=None, network_error=None):
        self.log = []
        self.events = []
        self.requests = []
        self.devices = FakeDevices(self.log, mic_error=mic_error)
        self.pcs = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if network_error:
                raise network_error
            return httpx.Response(status_code, text=body)

        def pc_factory():
            pc = FakePeerConnection(self.log)
            self.pcs.append(pc)
            return pc

        self.transport = RealtimeTransport(
            self.events.append,
            devices=self.devices,
            peer_connection_factory=pc_factory,
            http_client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )

    @property
    def pc(self):
        return self.pcs[0]


async def open_channel(harness: Harness):
    await harness.transport.open("ek_test_secret")
    harness.pc.channel.readyState = "open"
    harness.pc.channel.fire("open")


class TestHandshake:

    @pytest.mark.unit
    async def test_offer_is_posted_with_credential(self):
        harness = Harness()

        await harness.transport.open("ek_test_secret")

        request = harness.requests[0]
        assert str(request.url) == f"{settings.REALTIME_NEGOTIATION_URL}?model={settings.REALTIME_MODEL}"
        assert request.headers["Authorization"] == "Bearer ek_test_secret"
        assert request.headers["Content-Type"] == "application/sdp"
        assert request.content.decode() == OFFER_SDP

        pc = harness.pc
        assert pc.remoteDescription.sdp == ANSWER_SDP
        assert pc.remoteDescription.type == "answer"
        assert len(pc.tracks) == 1
        assert pc.channel.label == DATA_CHANNEL_LABEL
        assert pc.channel.ordered is True

    @pytest.mark.unit
    async def test_rejected_offer_releases_everything(self):
        harness = Harness(status_code=500, body="upstream broke")

        with pytest.raises(HandshakeError) as exc_info:
            await harness.transport.open("ek_test_secret")

        assert exc_info.value.message == "Failed to connect to OpenAI: 500"
        assert exc_info.value.upstream_status == 500
        assert harness.log == ["mic.stop", "channel.close", "pc.close"]

    @pytest.mark.unit
    async def test_network_error_is_a_handshake_error(self):
        harness = Harness(network_error=httpx.ConnectError("refused"))

        with pytest.raises(HandshakeError):
            await harness.transport.open("ek_test_secret")

        assert "mic.stop" in harness.log

    @pytest.mark.unit
    async def test_microphone_unavailable(self):
        harness = Harness(mic_error=MediaAcquisitionError("Microphone unavailable: denied"))

        with pytest.raises(MediaAcquisitionError):
            await harness.transport.open("ek_test_secret")

        assert harness.pcs == []
        assert harness.requests == []

    @pytest.mark.unit
    async def test_transport_is_single_use(self):
        harness = Harness()
        await harness.transport.open("ek_test_secret")
        await harness.transport.close()

        with pytest.raises(RuntimeError):
            await harness.transport.open("ek_test_secret")


class TestEvents:

    @pytest.mark.unit
    async def test_channel_open_is_reported(self):
        harness = Harness()

        await open_channel(harness)

        assert harness.transport.is_open is True
        assert [e.type for e in harness.events] == [E.CHANNEL_OPENED]

    @pytest.mark.unit
    async def test_server_messages_become_events(self):
        harness = Harness()
        await open_channel(harness)

        harness.pc.channel.fire("message", json.dumps({"type": "response.audio_transcript.delta", "delta": "Hi"}))
        harness.pc.channel.fire("message", json.dumps({"type": "rate_limits.updated"}))

        assert [(e.type, e.text) for e in harness.events[1:]] == [(E.OUTPUT_TRANSCRIPT_DELTA, "Hi")]

    @pytest.mark.unit
    async def test_failed_peer_connection_closes_channel(self):
        harness = Harness()
        await open_channel(harness)

        harness.pc.connectionState = "failed"
        harness.pc.fire("connectionstatechange")

        assert harness.events[-1].type == E.CHANNEL_CLOSED

    @pytest.mark.unit
    async def test_no_provider_events_after_close(self):
        harness = Harness()
        await open_channel(harness)
        channel = harness.pc.channel

        await harness.transport.close()
        channel.fire("message", json.dumps({"type": "input_audio_buffer.speech_started"}))
        channel.fire("close")

        assert [e.type for e in harness.events] == [E.CHANNEL_OPENED, E.CHANNEL_CLOSED]

    @pytest.mark.unit
    async def test_remote_audio_is_played(self):
        harness = Harness()
        await open_channel(harness)
        remote = FakeTrack(harness.log)

        harness.pc.fire("track", remote)
        await harness.transport.close()

        assert harness.devices.recorder.tracks == [remote]
        assert harness.log[-2:] == ["speaker.start", "speaker.stop"]


class TestSend:

    @pytest.mark.unit
    async def test_send_text_creates_item_then_response(self):
        harness = Harness()
        await open_channel(harness)

        assert harness.transport.send_text("I like my job") is True

        assert harness.pc.channel.sent == [
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": "I like my job"}],
                },
            },
            {"type": "response.create"},
        ]

    @pytest.mark.unit
    async def test_send_before_open_fails(self):
        harness = Harness()
        await harness.transport.open("ek_test_secret")

        assert harness.transport.send_text("hello") is False
        assert harness.pc.channel.sent == []


class TestClose:

    @pytest.mark.unit
    async def test_close_order_and_idempotence(self):
        harness = Harness()
        await open_channel(harness)

        await harness.transport.close()
        await harness.transport.close()

        assert harness.log == ["mic.stop", "channel.close", "pc.close"]
        assert harness.transport.is_open is False

    @pytest.mark.unit
    async def test_close_before_open(self):
        harness = Harness()

        await harness.transport.close()

        assert harness.log == []
