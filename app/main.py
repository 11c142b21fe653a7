import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from fastapi.responses import JSONResponse
from app.exceptions.handlers import (
    application_exception_handler,
    http_exception_handler,
    generic_exception_handler
)
from app.exceptions.errors import ApplicationException
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from app.database.base import Base
from app.database.connection import engine

from app.api.v1.routes import health_router, realtime_router, session_router, admin_router
from app.middlewares.clerk_auth import ClerkAuthMiddleware, whitelisted_routes

from app.core.config import settings
from app.core.logger import get_logger

logger = get_logger("voice-coach-backend")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 FastAPI app is starting...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Application database tables ensured.")

        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY is not set, realtime sessions and summaries will fail")

    except Exception as e:
        logger.error(f"Failed to initialize application: {e}")
        raise e

    yield

    await engine.dispose()
    logger.info("🛑 FastAPI app is shutting down...")

IS_DEVELOPMENT = settings.ENVIRONMENT == "development"

swagger_ui_parameters = {
    "deepLinking": True,
    "displayRequestDuration": True,
    "tryItOutEnabled": True,
    "filter": True,
    "syntaxHighlight.theme": "arta",
}

if IS_DEVELOPMENT:
    swagger_ui_parameters["persistAuthorization"] = True

app = FastAPI(
    title="Voice Coach Backend",
    version="1.0.0",
    lifespan=lifespan,
    description="""
    Backend for the AI voice coaching app.

    Mints ephemeral realtime credentials, stores sessions with their
    finalized transcripts, and produces post-session summaries.

    ## Authentication

    Uses Clerk JWT tokens. Include your token in the Authorization header:
    ```
    Authorization: Bearer <your-jwt-token>
    ```
    """,
    swagger_ui_parameters=swagger_ui_parameters,
    openapi_components={
        "securitySchemes": {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Enter your JWT token from Clerk authentication"
            }
        }
    },
    openapi_security=[{"BearerAuth": []}]
)

# Added first so CORS wraps it and answers preflights without a token
app.add_middleware(
    ClerkAuthMiddleware,
    whitelisted_routes=whitelisted_routes
)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")
app.include_router(session_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")

@app.get("/", include_in_schema=False)
async def root():
    return {
        "message": "Voice Coach Backend API",
        "docs": "/docs",
        "development_mode": IS_DEVELOPMENT,
        "version": "1.0.0"
    }

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        errors.append({
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input")) if error.get("input") is not None else None
        })

    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation failed",
            "detail": errors,
            "url": str(request.url),
            "method": request.method
        }
    )

app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=IS_DEVELOPMENT,
        limit_concurrency=20,
        timeout_keep_alive=30,
        limit_max_requests=1000,
        timeout_graceful_shutdown=30
    )
