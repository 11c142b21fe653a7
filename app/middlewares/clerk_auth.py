from typing import List, Optional
from fastapi import Depends, Request, HTTPException, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from clerk_backend_api import Clerk
from clerk_backend_api.security.types import AuthenticateRequestOptions
from httpx import Request as HttpxRequest
from app.core.config import settings
from app.database.connection import get_db
from app.models.user import User
from app.core.logger import get_logger

logger = get_logger("clerk_auth_middleware")

whitelisted_routes = [
    "/docs", "/openapi.json", "/redoc", "/favicon.ico", "/api/v1/health",
]

class ClerkAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, whitelisted_routes: List[str] = None):
        super().__init__(app)
        self.clerk_sdk = Clerk(bearer_auth=settings.CLERK_SECRET_KEY)
        self.whitelisted_routes = whitelisted_routes or []

    def _is_whitelisted(self, path: str) -> bool:
        """Check if the route is whitelisted (public)"""
        if path == "/":
            return True
        for route in self.whitelisted_routes:
            if path.startswith(route):
                return True
        return False

    def _verify_token(self, request: Request) -> Optional[dict]:
        """Verify the Clerk JWT and return its claims, or None when rejected."""
        httpx_request = HttpxRequest(
            method=request.method,
            url=str(request.url),
            headers=dict(request.headers)
        )
        options = AuthenticateRequestOptions(
            secret_key=settings.CLERK_SECRET_KEY,
            authorized_parties=settings.CLERK_AUTHORIZED_PARTIES or None
        )
        request_state = self.clerk_sdk.authenticate_request(httpx_request, options)

        if not request_state.is_signed_in:
            logger.warning(f"Invalid Clerk token: {request_state.reason}")
            return None
        return request_state.payload or {}

    async def dispatch(self, request: Request, call_next):
        """Verifies Clerk JWT tokens before any protected route runs."""

        # Skip authentication for whitelisted routes (public endpoints)
        if self._is_whitelisted(request.url.path):
            return await call_next(request)

        # Skip authentication for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            logger.warning(f"Missing Authorization header for: {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "No authorization header"}
            )
        if not auth_header.startswith("Bearer "):
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Unauthorized"}
            )

        try:
            claims = self._verify_token(request)
        except Exception as e:
            logger.error(f"Authentication error: {e}")
            claims = None

        clerk_user_id = claims.get("sub") if claims else None
        if not clerk_user_id:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Unauthorized"}
            )

        request.state.clerk_user_id = clerk_user_id
        request.state.clerk_claims = claims
        return await call_next(request)


async def get_authenticated_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """FastAPI dependency: resolve (or create) the user behind the verified token."""
    clerk_user_id = getattr(request.state, "clerk_user_id", None)
    if not clerk_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated"
        )

    result = await db.execute(select(User).where(User.clerk_id == clerk_user_id))
    user = result.scalar_one_or_none()

    if not user:
        claims = getattr(request.state, "clerk_claims", None) or {}
        user = User(clerk_id=clerk_user_id, email=claims.get("email"), is_active=True)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"🆕 Created user for Clerk ID {clerk_user_id}")

    request.state.user = user
    return user
