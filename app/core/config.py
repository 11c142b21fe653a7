import os
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()

class Settings:
    # Environment setting
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    LOG_DIR = os.getenv("LOG_DIR", "logs")

    # OpenAI API KEY (checked per request, the app must boot without it)
    openai_api_key: str = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")

    # Clerk Configuration
    CLERK_SECRET_KEY = os.getenv("CLERK_SECRET_KEY")
    CLERK_AUTHORIZED_PARTIES = [
        party.strip()
        for party in os.getenv("CLERK_AUTHORIZED_PARTIES", "").split(",")
        if party.strip()
    ]

    # db creds
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    DB_NAME = os.getenv("DB_NAME", "postgres")
    DB_PORT = os.getenv("DB_PORT", "5432")

    # Realtime voice session (Credential Broker + Transport)
    REALTIME_SESSIONS_URL = os.getenv("REALTIME_SESSIONS_URL", "https://api.openai.com/v1/realtime/sessions")
    REALTIME_NEGOTIATION_URL = os.getenv("REALTIME_NEGOTIATION_URL", "https://api.openai.com/v1/realtime")
    REALTIME_MODEL = os.getenv("REALTIME_MODEL", "gpt-4o-realtime-preview-2024-12-17")
    REALTIME_VOICE = os.getenv("REALTIME_VOICE", "alloy")
    REALTIME_TRANSCRIPTION_MODEL = os.getenv("REALTIME_TRANSCRIPTION_MODEL", "whisper-1")
    REALTIME_VAD_THRESHOLD = float(os.getenv("REALTIME_VAD_THRESHOLD", "0.5"))
    REALTIME_VAD_PREFIX_PADDING_MS = int(os.getenv("REALTIME_VAD_PREFIX_PADDING_MS", "300"))
    REALTIME_VAD_SILENCE_MS = int(os.getenv("REALTIME_VAD_SILENCE_MS", "800"))
    REALTIME_HTTP_TIMEOUT = float(os.getenv("REALTIME_HTTP_TIMEOUT", "20"))

    # Post-session summarization
    SUMMARY_MODEL = os.getenv("SUMMARY_MODEL", "gpt-4o-mini")
    SUMMARY_TEMPERATURE = float(os.getenv("SUMMARY_TEMPERATURE", "0.3"))

    # Voice client (cli/voice_session.py)
    COACH_API_URL = os.getenv("COACH_API_URL", "http://127.0.0.1:8000/api/v1")
    COACH_API_TOKEN = os.getenv("COACH_API_TOKEN")
    MIC_DEVICE = os.getenv("MIC_DEVICE", "default")
    MIC_FORMAT = os.getenv("MIC_FORMAT", "pulse")
    SPEAKER_DEVICE = os.getenv("SPEAKER_DEVICE", "default")
    SPEAKER_FORMAT = os.getenv("SPEAKER_FORMAT", "pulse")
    AUDIO_SAMPLE_RATE = int(os.getenv("AUDIO_SAMPLE_RATE", "24000"))
    AUDIO_CHANNELS = int(os.getenv("AUDIO_CHANNELS", "1"))

    # Build URL with SSL requirement based on environment
    def _build_database_url(self):
        override = os.getenv("DATABASE_URL")
        if override:
            return override
        base_url = f"postgresql+asyncpg://{self.DB_USER}:{quote_plus(self.DB_PASSWORD)}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        if self.ENVIRONMENT == "development":
            return base_url
        return f"{base_url}?ssl=require"

    @property
    def DATABASE_URL(self):
        return self._build_database_url()

    @property
    def is_postgres(self) -> bool:
        return self.DATABASE_URL.startswith("postgresql")

settings = Settings()
