"""
HTTP client for the voice coach backend, used by the realtime client.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.logger import get_logger
from app.exceptions.errors import (
    ApplicationException,
    AuthError,
    ConflictError,
    NotFoundError,
    QuotaExceededError,
    RateLimitedError,
    UpstreamError,
)

logger = get_logger("realtime.api_client")


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text


class CoachApiClient:

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        headers = {}
        token = token or settings.COACH_API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.COACH_API_URL,
            headers=headers,
            timeout=timeout,
            transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"❌ {method} {path} failed: {e}")
            raise UpstreamError(f"Backend request failed: {e}")

        if response.is_success:
            return response.json()

        message = _error_text(response)
        status_code = response.status_code
        logger.warning(f"{method} {path} -> {status_code}: {message}")
        if status_code == 401:
            raise AuthError(message)
        if status_code == 404:
            raise NotFoundError(message)
        if status_code == 409:
            raise ConflictError(message)
        if status_code == 429:
            raise RateLimitedError(message)
        if status_code == 402:
            raise QuotaExceededError(message)
        if status_code < 500:
            raise ApplicationException(message, status_code)
        raise UpstreamError(message, upstream_status=status_code, upstream_body=response.text)

    # Credential Broker

    async def request_credential(self, voice: Optional[str] = None) -> str:
        """Ephemeral client secret for one realtime connection. Never logged."""
        logger.info("Requesting ephemeral token...")
        data = await self._request(
            "POST", "/realtime/session", json={"voice": voice or settings.REALTIME_VOICE}
        )
        secret = (data.get("client_secret") or {}).get("value") if isinstance(data, dict) else None
        if not secret:
            raise UpstreamError("Invalid session response - no client secret")
        return secret

    # Sessions

    async def create_session(self) -> Dict:
        return await self._request("POST", "/sessions")

    async def get_session(self, session_id: str) -> Dict:
        return await self._request("GET", f"/sessions/{session_id}")

    async def list_sessions(self) -> List[Dict]:
        return await self._request("GET", "/sessions")

    async def list_messages(self, session_id: str) -> List[Dict]:
        return await self._request("GET", f"/sessions/{session_id}/messages")

    async def add_message(self, session_id: str, sender: str, content: str) -> Dict:
        return await self._request(
            "POST", f"/sessions/{session_id}/messages",
            json={"sender": sender, "content": content}
        )

    async def end_session(
        self,
        session_id: str,
        status: str,
        ended_at: Optional[datetime] = None,
        duration_seconds: Optional[int] = None
    ) -> Dict:
        payload: Dict[str, Any] = {"status": status}
        if ended_at is not None:
            payload["ended_at"] = ended_at.isoformat()
        if duration_seconds is not None:
            payload["duration_seconds"] = duration_seconds
        return await self._request("POST", f"/sessions/{session_id}/end", json=payload)

    async def rate_session(self, session_id: str, rating: int, feedback: List[str]) -> Dict:
        return await self._request(
            "PATCH", f"/sessions/{session_id}/rating",
            json={"rating": rating, "feedback": feedback}
        )

    async def generate_summary(self, session_id: str) -> Dict:
        return await self._request("POST", "/sessions/summary", json={"sessionId": session_id})

    async def check_admin(self) -> bool:
        data = await self._request("GET", "/admin/check")
        return bool(data.get("isAdmin"))
