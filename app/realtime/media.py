"""
Local audio devices for the realtime client.

The microphone is an aiortc MediaPlayer reading the capture device through
ffmpeg; synthesized speech is played by a MediaRecorder writing to the
playback device. Echo cancellation, noise suppression and auto-gain are
handled by the audio server (point MIC_DEVICE at its echo-cancel source).
"""

from typing import Dict, Optional

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer, MediaRecorder

from app.core.config import settings
from app.core.logger import get_logger
from app.exceptions.errors import MediaAcquisitionError

logger = get_logger("realtime.media")


class AudioDevices:
    """Opens the capture and playback devices for one conversation."""

    def __init__(
        self,
        mic_device: Optional[str] = None,
        mic_format: Optional[str] = None,
        speaker_device: Optional[str] = None,
        speaker_format: Optional[str] = None,
        sample_rate: Optional[int] = None,
        channels: Optional[int] = None
    ):
        self.mic_device = mic_device or settings.MIC_DEVICE
        self.mic_format = mic_format or settings.MIC_FORMAT
        self.speaker_device = speaker_device or settings.SPEAKER_DEVICE
        self.speaker_format = speaker_format or settings.SPEAKER_FORMAT
        self.sample_rate = sample_rate or settings.AUDIO_SAMPLE_RATE
        self.channels = channels or settings.AUDIO_CHANNELS

    def _audio_options(self) -> Dict[str, str]:
        # ffmpeg demuxer options are strings
        return {"sample_rate": str(self.sample_rate), "channels": str(self.channels)}

    def open_microphone(self) -> MediaStreamTrack:
        """Single outbound audio track. Raises MediaAcquisitionError when unavailable."""
        try:
            player = MediaPlayer(self.mic_device, format=self.mic_format, options=self._audio_options())
        except Exception as e:
            logger.error(f"❌ Microphone unavailable ({self.mic_format}:{self.mic_device}): {e}")
            raise MediaAcquisitionError(f"Microphone unavailable: {e}")

        if player.audio is None:
            raise MediaAcquisitionError(f"No audio stream on {self.mic_format}:{self.mic_device}")

        logger.info(f"🎤 Microphone open: {self.mic_format}:{self.mic_device} @ {self.sample_rate}Hz")
        return player.audio

    def open_speaker(self) -> MediaRecorder:
        """Sink for the remote audio track."""
        try:
            recorder = MediaRecorder(self.speaker_device, format=self.speaker_format)
        except Exception as e:
            logger.error(f"❌ Speaker unavailable ({self.speaker_format}:{self.speaker_device}): {e}")
            raise MediaAcquisitionError(f"Speaker unavailable: {e}")
        logger.info(f"🔈 Speaker open: {self.speaker_format}:{self.speaker_device}")
        return recorder
