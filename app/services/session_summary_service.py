import openai
import json
import re
from typing import Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logger import get_logger
from app.exceptions.errors import (
    ConfigurationError,
    PersistenceError,
    QuotaExceededError,
    RateLimitedError,
    SummarizationParseError,
    UpstreamError,
)
from app.models.session_message import SessionMessage
from app.schemas.session_schemas import SessionAnalysis
from app.services.session_service import SessionService

logger = get_logger("session_summary_service")

EMPTY_TRANSCRIPT_SUMMARY = "Session completed. No conversation transcript was recorded."
FALLBACK_SUMMARY = "Conversation completed. Unable to generate detailed summary."

_CODE_FENCE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)


class SessionSummaryGenerator:
    """Post-session digest: prose summary, goals and topics from the transcript."""

    def __init__(self, openai_client: Optional[openai.AsyncOpenAI] = None):
        self.openai_client = openai_client

    def _get_client(self) -> openai.AsyncOpenAI:
        if self.openai_client is None:
            if not settings.openai_api_key:
                logger.error("OPENAI_API_KEY not configured")
                raise ConfigurationError("AI service not configured")
            self.openai_client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.OPENAI_BASE_URL
            )
        return self.openai_client

    def format_transcript(self, messages: List[SessionMessage]) -> str:
        return "\n\n".join(
            f"{'User' if m.sender == 'user' else 'AI'}: {m.content}" for m in messages
        )

    def _get_system_prompt(self) -> str:
        return (
            "You are an expert conversation analyst. Analyze the following conversation "
            "and extract key insights. Be concise and action-oriented."
        )

    def _build_analysis_prompt(self, transcript: str) -> str:
        return f"""Analyze this conversation and provide a structured analysis:

{transcript}

Provide your analysis in the following format (respond with ONLY valid JSON, no markdown):
{{
  "summary": "A 2-3 sentence summary of what was discussed",
  "main_goals": ["goal1", "goal2", "goal3"],
  "topics_discussed": ["topic1", "topic2", "topic3"]
}}"""

    def parse_analysis(self, analysis_text: str) -> SessionAnalysis:
        """Strip markdown fences and validate the three required fields."""
        cleaned = _CODE_FENCE.sub("", analysis_text).strip()
        try:
            return SessionAnalysis.model_validate(json.loads(cleaned))
        except (json.JSONDecodeError, ValidationError) as e:
            raise SummarizationParseError(f"Unparseable analysis: {e}", raw_output=analysis_text)

    def _fallback_analysis(self) -> SessionAnalysis:
        return SessionAnalysis(summary=FALLBACK_SUMMARY, main_goals=[], topics_discussed=[])

    async def _request_analysis(self, transcript: str) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=settings.SUMMARY_MODEL,
                messages=[
                    {"role": "system", "content": self._get_system_prompt()},
                    {"role": "user", "content": self._build_analysis_prompt(transcript)},
                ],
                temperature=settings.SUMMARY_TEMPERATURE,
            )
        except openai.RateLimitError as e:
            # OpenAI reports exhausted credits as a 429 with its own code
            if getattr(e, "code", None) == "insufficient_quota":
                raise QuotaExceededError()
            raise RateLimitedError()
        except openai.APIStatusError as e:
            if e.status_code == 402:
                raise QuotaExceededError()
            logger.error(f"❌ AI gateway error: {e.status_code} {e.message}")
            raise UpstreamError(
                "AI analysis failed",
                upstream_status=e.status_code,
                upstream_body=e.message
            )
        except openai.APIError as e:
            logger.error(f"❌ AI request failed: {e}")
            raise UpstreamError("AI analysis failed")

        analysis_text = response.choices[0].message.content if response.choices else None
        if not analysis_text:
            logger.error("No analysis content in AI response")
            raise UpstreamError("AI analysis produced no content")
        return analysis_text

    async def _store(self, db: AsyncSession, session_id: str, analysis: SessionAnalysis) -> None:
        session = await SessionService.get_session(db, session_id)
        if session is None:
            raise PersistenceError("Session disappeared before the summary was saved")
        session.summary = analysis.summary
        session.main_goals = list(analysis.main_goals)
        session.topics_discussed = list(analysis.topics_discussed)
        await db.commit()

    async def generate_for_session(self, db: AsyncSession, session_id: str) -> Dict:
        """
        Summarize a session's transcript and persist the digest.

        Empty transcripts and unparseable model output both resolve to a
        successful fallback. Rate limit (429) and quota (402) failures of the
        model call propagate with their own status.
        """
        try:
            messages = await SessionService.list_messages(db, session_id)
        except Exception as e:
            logger.error(f"❌ Failed to fetch messages for {session_id}: {e}")
            raise PersistenceError("Failed to fetch messages")

        if not messages:
            logger.info(f"No messages found for session {session_id}, storing default summary")
            analysis = SessionAnalysis(
                summary=EMPTY_TRANSCRIPT_SUMMARY, main_goals=[], topics_discussed=[]
            )
            try:
                await self._store(db, session_id, analysis)
            except Exception as e:
                await db.rollback()
                logger.error(f"Failed to store default summary for {session_id}: {e}")
            return {"success": True, **analysis.model_dump()}

        transcript = self.format_transcript(messages)
        logger.info(f"🤖 Summarizing session {session_id} ({len(messages)} messages)")
        analysis_text = await self._request_analysis(transcript)

        try:
            analysis = self.parse_analysis(analysis_text)
        except SummarizationParseError as e:
            logger.warning(f"Failed to parse AI response for {session_id}: {e.raw_output[:200]}")
            analysis = self._fallback_analysis()

        try:
            await self._store(db, session_id, analysis)
        except Exception as e:
            await db.rollback()
            logger.error(f"❌ Failed to save analysis for {session_id}: {e}")
            raise PersistenceError("Failed to save analysis")

        logger.info(f"✅ Session summary generated: {session_id}")
        return {"success": True, **analysis.model_dump()}


summary_generator = SessionSummaryGenerator()
