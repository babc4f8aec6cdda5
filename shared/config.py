"""Configuration helpers for environment variables."""

from __future__ import annotations

import os
import logging

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


def _should_load_dotenv() -> bool:
    """Return whether local dotenv loading should run."""
    app_env = os.getenv("APP_ENV", "dev").strip().lower()
    return app_env in {"dev", "local"}


if _should_load_dotenv():
    load_dotenv()


def get_env(name: str, default: str | None = None) -> str | None:
    """Return a raw environment value or default."""
    return os.getenv(name, default)


def _stripped(name: str) -> str | None:
    value = (get_env(name, "") or "").strip()
    return value or None


def app_env() -> str:
    """Return the current application environment."""
    return (get_env("APP_ENV", "dev") or "dev").strip() or "dev"


def cors_allow_origins() -> list[str]:
    """Return CORS allowed origins from env with safe environment defaults."""
    raw_origins = get_env("CORS_ALLOW_ORIGINS", "") or ""
    parsed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    if parsed_origins:
        return parsed_origins

    if app_env().strip().lower() in {"dev", "local"}:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]

    ui_origin = (get_env("UI_ORIGIN", "") or "").strip()
    if ui_origin:
        return [ui_origin]

    logger.warning(
        "cors_allow_origins_empty_in_prod app_env=%s; define CORS_ALLOW_ORIGINS or UI_ORIGIN",
        app_env(),
    )

    return []


def stripe_secret_key() -> str:
    """Return the Stripe secret key; the service cannot start without it."""
    secret_key = _stripped("STRIPE_SECRET_KEY")
    if secret_key is None:
        raise RuntimeError("STRIPE_SECRET_KEY is not configured")
    return secret_key


def stripe_webhook_secret() -> str | None:
    """Return the Stripe webhook signing secret when configured."""
    return _stripped("STRIPE_WEBHOOK_SECRET")


def public_base_url() -> str | None:
    """Return the public site URL used for checkout redirects."""
    base_url = _stripped("PUBLIC_BASE_URL") or _stripped("NEXT_PUBLIC_BASE_URL")
    return base_url.rstrip("/") if base_url else None


def stripe_price_ids() -> dict[str, str | None]:
    """Return configured Stripe price ids keyed by plan id and `override`."""
    return {
        "pro": _stripped("STRIPE_PRICE_ID_PRO"),
        "elite": _stripped("STRIPE_PRICE_ID_ELITE"),
        "override": _stripped("STRIPE_PRICE_ID_OVERRIDE"),
    }


def firebase_project_id() -> str | None:
    """Return Firebase project id when configured."""
    return _stripped("FIREBASE_PROJECT_ID")


def firebase_credentials_path() -> str | None:
    """Return the service account JSON path when configured."""
    return _stripped("GOOGLE_APPLICATION_CREDENTIALS")
