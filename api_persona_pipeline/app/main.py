"""
FastAPI entrypoint for the API persona analysis service.

Routes:
- GET  /api-analysis/test     backend probe, no auth
- POST /api-analysis/analyze  run the analysis pipeline
- GET  /health                liveness

Wraps the pipeline with the access capabilities from policies.py: a rate
limiting middleware, bearer-token authentication (when JWT_SECRET is set),
ownership checks, CORS and security headers.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .analyzer import Analyzer, InternalError, ValidationError
from .config import Settings, get_settings
from .llm_client import BackendError, OllamaClient
from .policies import (
    BearerTokenAuthenticator,
    Identity,
    OwnerOrAdminAuthorizer,
    RateLimitDecision,
    RateLimiter,
    RequestDescriptor,
)
from .schemas import AnalysisRequest, AnalyzeResponse, ServiceStatus
from .utils import utc_now_iso

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Content-Security-Policy": "default-src 'self'; img-src 'self' data: blob: https:; connect-src 'self' https: wss:",
}


class AccessDenied(Exception):
    def __init__(self, status_code: int, reason: str):
        super().__init__(reason)
        self.status_code = status_code
        self.reason = reason


def _describe(request: Request) -> RequestDescriptor:
    """Framework-free view of the request for the policy objects."""
    return RequestDescriptor(
        client_key=request.client.host if request.client else "unknown",
        path=request.url.path,
        method=request.method,
        authorization=request.headers.get("authorization"),
        resource_id=request.path_params.get("id"),
    )


def _rate_limit_headers(decision: RateLimitDecision) -> dict:
    return {
        "RateLimit-Limit": str(decision.limit),
        "RateLimit-Remaining": str(decision.remaining),
        "RateLimit-Reset": str(decision.retry_after),
    }


def require_access(request: Request) -> Optional[Identity]:
    """Authenticate and authorize; anonymous when authentication is disabled."""
    authenticator = request.app.state.authenticator
    if authenticator is None:
        return None

    descriptor = _describe(request)
    decision = authenticator.authenticate(descriptor)
    if not decision.allowed:
        raise AccessDenied(401, decision.reason)

    decision = request.app.state.authorizer.authorize(descriptor, decision.identity)
    if not decision.allowed:
        raise AccessDenied(403, decision.reason)
    return decision.identity


async def rate_limit_middleware(request: Request, call_next):
    limiter: RateLimiter = request.app.state.rate_limiter
    descriptor = _describe(request)
    decision = limiter.check(descriptor.client_key, descriptor.path, descriptor.method)

    if not decision.allowed:
        return JSONResponse(
            status_code=429,
            content={
                "error": "Too many requests",
                "message": "Rate limit exceeded. Please wait before making more requests.",
                "retryAfter": decision.retry_after,
            },
            headers=_rate_limit_headers(decision),
        )

    if decision.delay_seconds:
        logger.info(f"Slowing down {descriptor.client_key} by {decision.delay_seconds:.1f}s")
        await asyncio.sleep(decision.delay_seconds)

    response = await call_next(request)
    if response.status_code < 400:
        limiter.release(descriptor.client_key, descriptor.path)
    if decision.tier != "skip":
        response.headers.update(_rate_limit_headers(decision))
    return response


async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


async def access_denied_handler(request: Request, exc: AccessDenied):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.reason})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected request body on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("AI API analysis service is starting...")
    if settings.treblle_configured:
        logger.info("Treblle configuration found")
    else:
        logger.warning("Treblle not configured. Set TREBLLE_API_KEY and TREBLLE_PROJECT_ID")
    logger.info(f"Using Ollama at {settings.ollama_base_url} (model: {settings.model})")
    if settings.auth_enabled:
        logger.info("Bearer-token authentication enabled for /api-analysis/analyze")
    else:
        logger.warning("JWT_SECRET not set, /api-analysis/analyze accepts anonymous requests")
    logger.info(f"Environment: {settings.environment}")
    yield


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.BaseTransport] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the application.

    `transport` is passed to the backend client (tests use
    httpx.MockTransport); `rate_limiter` replaces the one built from settings.
    """
    settings = settings or get_settings()

    app = FastAPI(title="API Persona Analysis", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.llm_client = OllamaClient(settings, transport=transport)
    app.state.analyzer = Analyzer(app.state.llm_client, settings)
    app.state.authenticator = BearerTokenAuthenticator(settings.jwt_secret) if settings.auth_enabled else None
    app.state.authorizer = OwnerOrAdminAuthorizer()
    app.state.rate_limiter = rate_limiter or RateLimiter(
        window_seconds=settings.rate_limit_window_ms / 1000.0,
        general_max=settings.rate_limit_max,
    )

    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(security_headers_middleware)
    if settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "Origin", "Accept", "X-API-Key"],
            expose_headers=["RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset"],
        )

    app.add_exception_handler(AccessDenied, access_denied_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api-analysis/test", response_model=ServiceStatus)
    def test_endpoint(request: Request):
        client: OllamaClient = request.app.state.llm_client
        status, models = "unavailable", []
        try:
            logger.info("Checking Ollama connectivity...")
            models = client.list_models()
            status = "available"
            logger.info(f"Ollama connected with {len(models)} models")
        except BackendError as e:
            logger.warning(f"Ollama not available: {e}")

        return ServiceStatus(
            message="AI API Analysis is working!",
            timestamp=utc_now_iso(),
            treblle_configured=settings.treblle_configured,
            ollama_status=status,
            available_models=models,
            environment=settings.environment,
        )

    @app.post("/api-analysis/analyze", response_model=AnalyzeResponse)
    def analyze_endpoint(
        request: Request,
        payload: Optional[AnalysisRequest] = None,
        identity: Optional[Identity] = Depends(require_access),
    ):
        analyzer: Analyzer = request.app.state.analyzer
        if identity is not None:
            logger.info(f"Analysis requested by user {identity.user_id}")
        try:
            result = analyzer.analyze(payload or AnalysisRequest())
        except ValidationError as e:
            logger.warning(f"Validation failed: {e}")
            return JSONResponse(status_code=400, content={"error": str(e)})
        except InternalError as e:
            logger.error(f"Analysis controller error: {e}")
            return JSONResponse(status_code=500, content={"error": "Failed to analyze API", "details": str(e)})

        return AnalyzeResponse(
            data=result,
            message=f"Analysis completed successfully using {result.model_used}",
            cached=False,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
