"""
HTTP access boundary for the identity registry.

Run with:
    uvicorn idregistry_service.main:create_app --factory
or:
    idregistry serve
"""

import json
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from idregistry import __version__
from idregistry.clock import Clock
from idregistry.errors import (
    AlreadyExistsError,
    NotFoundError,
    RegistryAlreadyBootstrappedError,
    RegistryError,
)
from idregistry.journal import verify_chain
from idregistry.principals import normalize_principal
from idregistry.registry import IdentityRegistry
from idregistry.store import open_store
from idregistry.util import now_epoch

from .config import Settings, is_production, load_settings, validate_settings
from .logging_config import audit_log, configure_logging, set_request_id
from .models import (
    ErrorResponse,
    HealthResponse,
    IdentityView,
    JournalEntryView,
    JournalProof,
    RegisterRequest,
    RegistryInfoView,
)
from .rate_limit import RateLimiter
from .security import (
    BadSignatureError,
    RateLimitError,
    caller_from_header,
    caller_from_signature,
    extract_client_id,
)

log = logging.getLogger(__name__)

CALLER_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
}


def build_registry(settings: Settings, clock: Optional[Clock] = None) -> IdentityRegistry:
    """Open the configured store, bootstrapping it on first start if allowed."""
    store = open_store(
        settings.store,
        path=settings.db_path,
        stripes=settings.lock_stripes,
        journal=settings.journal,
    )
    if store.is_bootstrapped() or not settings.auto_bootstrap:
        if not store.is_bootstrapped():
            log.warning("registry store is not bootstrapped; operations will fail until it is")
        return IdentityRegistry(store, clock)
    try:
        registry = IdentityRegistry.bootstrap(store, settings.admin, clock)
    except RegistryAlreadyBootstrappedError:
        # Another worker on the same database bootstrapped first.
        log.info("registry already bootstrapped by another process")
        return IdentityRegistry(store, clock)
    audit_log.registry_bootstrapped(registry.info().admin, store.backend)
    return registry


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[IdentityRegistry] = None,
    clock: Optional[Clock] = None,
    configure_logs: bool = True
) -> FastAPI:
    """Create the FastAPI application around one registry instance."""
    settings = settings or load_settings()
    problems = validate_settings(settings)
    if problems:
        raise ValueError(f"invalid registry settings: {problems}")

    if configure_logs:
        configure_logging(settings.log_level, settings.log_json, settings.log_file)

    if registry is None:
        registry = build_registry(settings, clock)

    register_limiter = RateLimiter(settings.register_rpm)
    attest_limiter = RateLimiter(settings.attest_rpm)

    app = FastAPI(
        title="Identity Registry",
        description="Single-writer identity attestation registry",
        version=__version__,
        docs_url=None if is_production(settings) else "/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.register_limiter = register_limiter
    app.state.attest_limiter = attest_limiter

    @app.exception_handler(RegistryError)
    async def _registry_error_handler(request: Request, exc: RegistryError):
        if exc.http_status >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc)
        headers = {}
        if isinstance(exc, RateLimitError):
            headers["Retry-After"] = str(exc.details["retry_after"])
        return JSONResponse(status_code=exc.http_status, content=exc.as_dict(), headers=headers)

    @app.middleware("http")
    async def _request_id_middleware(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id") or None)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    async def get_caller(request: Request) -> str:
        """Resolve the caller principal of a mutating request."""
        try:
            if settings.caller_auth == "header":
                return caller_from_header(request.headers)
            raw = await request.body()
            try:
                body = json.loads(raw) if raw else None
            except ValueError:
                raise BadSignatureError("request body is not valid JSON")
            return caller_from_signature(
                request.headers,
                request.method,
                request.url.path,
                body,
                now_epoch(),
                settings.max_clock_skew_seconds,
            )
        except RegistryError as e:
            audit_log.security_event(
                "caller_rejected",
                severity="medium",
                reason=e.code,
                path=request.url.path,
            )
            raise

    def enforce_rate_limit(limiter: RateLimiter, operation: str, caller: str) -> None:
        result = limiter.check(extract_client_id(operation, caller))
        if not result.allowed:
            audit_log.rate_limit_exceeded(caller, operation)
            raise RateLimitError(operation, result.retry_after or 0)

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(
            status="ok",
            version=__version__,
            bootstrapped=registry.store.is_bootstrapped(),
            components=[registry.store.backend, f"caller_auth:{settings.caller_auth}"],
        )

    @app.post(
        "/v1/identities",
        status_code=201,
        response_model=IdentityView,
        responses={**CALLER_ERRORS, 409: {"model": ErrorResponse}},
    )
    def register_identity(req: RegisterRequest, caller: str = Depends(get_caller)):
        enforce_rate_limit(register_limiter, "register", caller)
        try:
            record = registry.register(caller, req.name)
        except AlreadyExistsError as e:
            audit_log.registration_rejected(caller, e.code)
            raise
        audit_log.identity_registered(caller, req.name)
        return IdentityView.of(caller, record)

    @app.post(
        "/v1/identities/{target}/attestations",
        response_model=IdentityView,
        responses={**CALLER_ERRORS, 404: {"model": ErrorResponse}},
    )
    def attest_identity(target: str, caller: str = Depends(get_caller)):
        target = normalize_principal(target)
        enforce_rate_limit(attest_limiter, "attest", caller)
        try:
            record = registry.attest(caller, target)
        except NotFoundError as e:
            audit_log.attestation_rejected(target, caller, e.code)
            raise
        audit_log.identity_attested(target, caller, record.attested_at)
        return IdentityView.of(target, record)

    def lookup_or_log(target: str):
        target = normalize_principal(target)
        try:
            return target, registry.lookup(target)
        except NotFoundError:
            audit_log.lookup_miss(target)
            raise

    @app.get("/v1/identities/{target}", response_model=IdentityView, responses={404: {"model": ErrorResponse}})
    def get_identity(target: str):
        target, record = lookup_or_log(target)
        return IdentityView.of(target, record)

    @app.get("/v1/identities/{target}/view")
    def get_identity_view(target: str):
        """[name, verified, "attested_at", attested_by]"""
        _, record = lookup_or_log(target)
        return record.to_view()

    @app.get("/v1/identities/{target}/attestations", response_model=List[JournalEntryView])
    def identity_history(target: str):
        return [JournalEntryView.of(e) for e in registry.history(target)]

    @app.get("/v1/registry", response_model=RegistryInfoView)
    def registry_info():
        return RegistryInfoView.of(registry.info(), settings.journal)

    @app.get("/v1/journal/proof", response_model=JournalProof)
    def journal_proof():
        entries = registry.journal()
        return JournalProof(
            entries=len(entries),
            head_entry_hash=entries[-1].entry_hash if entries else None,
            valid=verify_chain(entries) is None,
        )

    return app
