"""FastAPI entrypoint for Limitter HTTP endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import FastAPI, Header
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse

from shared import config as _config
from shared import plans
from backend.auth.firebase_auth import RequestSession, build_request_session, get_user_from_bearer_token
from backend.errors import ForbiddenError, LimitterError, UnauthorizedError
from backend.factory import BackendServices, build_backend_services
from backend.services.user_transactions import UserTransactionList
from shared.models import (
    CheckoutSessionCreateRequest,
    CheckoutSessionCreateResponse,
    CheckoutSessionLookupRequest,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PricesResult,
)


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_backend_services() -> BackendServices:
    """Create and cache backend services once per process."""

    return build_backend_services()


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise UnauthorizedError("Invalid Authorization header")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise UnauthorizedError("Missing bearer token")
    return token


def _resolve_request_session(authorization: str | None) -> RequestSession:
    """Resolve the caller's identity and admin flag from the authorization header."""

    token = _extract_bearer_token(authorization)
    claims = get_user_from_bearer_token(token)
    return build_request_session(claims, get_backend_services().users_repository)


def _require_admin(authorization: str | None) -> RequestSession:
    session = _resolve_request_session(authorization)
    if not session.is_admin:
        logger.warning("admin_access_denied user_id=%s", session.user_id)
        raise ForbiddenError("Admin access required")
    return session


app = FastAPI(title="Limitter API")

ALLOW_ORIGINS = _config.cors_allow_origins()


@app.middleware("http")
async def log_http_requests(request: Request, call_next):
    """Log incoming requests, HTTP status codes and unexpected errors."""

    logger.info("http_request_received method=%s path=%s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "http_request_failed method=%s path=%s",
            request.method,
            request.url.path,
        )
        raise

    logger.info(
        "http_response_sent method=%s path=%s status_code=%s",
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("cors_allow_origins=%s", ALLOW_ORIGINS)


@app.exception_handler(LimitterError)
async def handle_limitter_error(request: Request, exc: LimitterError) -> JSONResponse:
    """Map domain errors to `{error}` bodies with their HTTP status."""

    logger.info(
        "request_error method=%s path=%s status_code=%s error_type=%s message=%s",
        request.method,
        request.url.path,
        exc.status_code,
        type(exc).__name__,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return malformed request bodies as 400 with the first validation message."""

    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"Invalid {location or 'request body'}: {errors[0].get('msg')}"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.get("/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""

    return {"status": "ok"}


@app.post("/api/create-payment-intent")
def create_payment_intent(payload: PaymentIntentRequest) -> dict[str, Any]:
    """Create a Stripe payment intent and return its client secret."""

    client_secret = get_backend_services().gateway.create_payment_intent(
        amount=payload.amount,
        payment_type=payload.payment_type,
        quantity=payload.quantity,
        plan=payload.plan,
    )
    return _dump(PaymentIntentResponse(client_secret=client_secret))


@app.post("/api/get-session")
def get_session(payload: CheckoutSessionLookupRequest) -> dict[str, Any]:
    """Return a checkout session with its payment details expanded."""

    session = get_backend_services().gateway.get_checkout_session(payload.session_id)
    return {"session": session}


@app.post("/api/create-checkout-session")
def create_checkout_session(payload: CheckoutSessionCreateRequest) -> dict[str, Any]:
    """Create a hosted checkout session for a plan or an override bundle."""

    session_id = get_backend_services().checkout_service.create_checkout_session(
        payment_type=payload.payment_type,
        user_id=payload.user_id,
        plan=payload.plan,
        quantity=payload.quantity,
    )
    return _dump(CheckoutSessionCreateResponse(session_id=session_id))


@app.get("/api/get-prices")
def get_prices() -> dict[str, Any]:
    """Return unit amounts for every configured price."""

    return _dump(PricesResult(prices=get_backend_services().checkout_service.get_prices()))


@app.get("/api/plans")
def get_plans() -> dict[str, Any]:
    """Return the plan catalog for the pricing page."""

    return _dump(plans.plan_catalog())


@app.post("/api/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
) -> dict[str, Any]:
    """Verify and acknowledge a Stripe webhook delivery."""

    payload = await request.body()
    return get_backend_services().checkout_service.handle_webhook(payload=payload, signature=stripe_signature)


@app.get("/api/transactions")
def list_my_transactions(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    """Return the signed-in user's transactions, newest first."""

    session = _resolve_request_session(authorization)
    feed = UserTransactionList(get_backend_services().transactions_repository)
    transactions = feed.set_user(session.user_id)
    return {
        "transactions": [_dump(transaction) for transaction in transactions],
        "rows": feed.rows(),
    }


@app.get("/api/admin/transactions")
def admin_list_transactions(
    cursor: str | None = None,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """Return one page of all transactions for the admin dashboard."""

    _require_admin(authorization)
    page = get_backend_services().transactions_repository.list_all_transactions(cursor or None)
    return _dump(page)


@app.get("/api/admin/transactions/search")
def admin_search_transactions(
    term: str = "",
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """Search transactions by id or user id; a blank term returns the first page."""

    _require_admin(authorization)
    repository = get_backend_services().transactions_repository
    if not term.strip():
        return _dump(repository.list_all_transactions(None))

    results = repository.search_transactions(term)
    return {
        "transactions": [_dump(transaction) for transaction in results],
        "lastDoc": None,
        "hasMore": False,
    }


@app.get("/api/admin/transactions/{transaction_id}")
def admin_get_transaction(
    transaction_id: str,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """Return one transaction joined with its owner's profile."""

    _require_admin(authorization)
    return _dump(get_backend_services().transactions_repository.get_transaction_details(transaction_id))
