"""
Realtime Credential Broker

Exchanges an authenticated caller for a short-lived OpenAI Realtime
client secret. The long-lived provider key never leaves the server.
"""

from typing import Dict

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.core.logger import get_logger
from app.exceptions.errors import ConfigurationError, UpstreamError
from app.models.system_prompt import SystemPrompt

logger = get_logger("credential_broker")


DEFAULT_PROMPT = """You are a warm, empathetic AI coach conducting an employee feedback survey. Your role is to:

1. Create a safe, comfortable space for honest conversation
2. Ask thoughtful follow-up questions to understand experiences deeply
3. Listen actively and validate feelings without judgment
4. Gently guide the conversation through key feedback topics
5. Keep responses concise and conversational (2-3 sentences max)
6. Use natural pauses and acknowledgments like "I hear you" or "That makes sense"

Key topics to explore:
- Overall job satisfaction and engagement
- Team dynamics and collaboration
- Management and leadership effectiveness
- Work-life balance and wellbeing
- Growth opportunities and career development
- Workplace culture and values alignment

Remember: This is a confidential, anonymous conversation. Encourage openness and honesty. If someone says "pause", acknowledge it warmly and let them know you'll be here when they're ready to continue."""


class RealtimeCredentialBroker:
    """Mints one ephemeral realtime credential per call. No retries here."""

    async def get_active_prompt(self, db: AsyncSession) -> str:
        """Active coaching instructions, or the built-in default. Never raises."""
        try:
            result = await db.execute(
                select(SystemPrompt)
                .where(SystemPrompt.is_active == True)  # noqa: E712
                .order_by(SystemPrompt.updated_at.desc())
                .limit(1)
            )
            prompt = result.scalar_one_or_none()
            if prompt and prompt.prompt_text:
                logger.info(f"Using custom system prompt '{prompt.name}'")
                return prompt.prompt_text
            logger.info("No active prompt found, using default")
        except Exception as e:
            logger.warning(f"Error fetching active prompt, using default: {e}")
        return DEFAULT_PROMPT

    def build_session_config(self, voice: str, instructions: str) -> Dict:
        """Session parameters negotiated with the provider."""
        return {
            "model": settings.REALTIME_MODEL,
            "voice": voice,
            "instructions": instructions,
            "input_audio_transcription": {
                "model": settings.REALTIME_TRANSCRIPTION_MODEL
            },
            "turn_detection": {
                "type": "server_vad",
                "threshold": settings.REALTIME_VAD_THRESHOLD,
                "prefix_padding_ms": settings.REALTIME_VAD_PREFIX_PADDING_MS,
                "silence_duration_ms": settings.REALTIME_VAD_SILENCE_MS
            }
        }

    async def create_session(self, db: AsyncSession, user_id: str, voice: str) -> Dict:
        """
        Request an ephemeral session from the provider.

        Returns the provider payload as-is: `client_secret.value` plus the
        negotiated voice, turn detection and transcription settings.
        """
        api_key = settings.openai_api_key
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

        instructions = await self.get_active_prompt(db)
        payload = self.build_session_config(voice, instructions)

        logger.info(f"🎙️ Creating ephemeral session for user {user_id} with voice: {voice}")

        try:
            async with httpx.AsyncClient(timeout=settings.REALTIME_HTTP_TIMEOUT) as client:
                response = await client.post(
                    settings.REALTIME_SESSIONS_URL,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Realtime session request failed: {e}")
            raise UpstreamError(f"OpenAI API request failed: {e}")

        if response.status_code >= 400:
            error_text = response.text
            logger.error(f"❌ OpenAI API error: {response.status_code} {error_text}")
            raise UpstreamError(
                f"OpenAI API error: {response.status_code} - {error_text}",
                upstream_status=response.status_code,
                upstream_body=error_text,
            )

        data = response.json()
        logger.info("✅ Ephemeral session created")
        return data


credential_broker = RealtimeCredentialBroker()
