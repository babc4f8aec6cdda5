"""Composition root for backend services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from backend.db.firestore_client import FirestoreClient, FirestoreSettings
from backend.payments.gateway import PaymentGateway, StripePaymentGateway
from backend.repositories.transactions_repository import (
    FirestoreTransactionsRepository,
    InMemoryTransactionsRepository,
    TransactionsRepository,
)
from backend.repositories.users_repository import (
    FirestoreUsersRepository,
    InMemoryUsersRepository,
    UsersRepository,
)
from backend.services.checkout import CheckoutService
from shared import config


logger = logging.getLogger(__name__)

_DEMO_USER_ID = "demo-user"


def _demo_rows() -> list[dict[str, object]]:
    return [
        {
            "id": "txn_demo_plan",
            "user_id": _DEMO_USER_ID,
            "type": "plan_purchase",
            "amount": 4.99,
            "status": "completed",
            "timestamp": datetime(2025, 1, 10, 9, 30, tzinfo=timezone.utc),
            "payment_method": "card",
            "metadata": {"plan": "pro"},
        },
        {
            "id": "txn_demo_override",
            "user_id": _DEMO_USER_ID,
            "type": "override_purchase",
            "amount": 9.95,
            "status": "completed",
            "timestamp": datetime(2025, 1, 12, 18, 5, tzinfo=timezone.utc),
            "payment_method": "card",
            "metadata": {"quantity": 5, "unit_price": "1.99"},
        },
    ]


@dataclass(slots=True)
class BackendServices:
    users_repository: UsersRepository
    transactions_repository: TransactionsRepository
    gateway: PaymentGateway
    checkout_service: CheckoutService


def build_repositories() -> tuple[UsersRepository, TransactionsRepository]:
    """Build repositories over Firestore, or seeded in-memory ones when it is not configured."""

    project_id = config.firebase_project_id()
    if project_id:
        client = FirestoreClient.from_settings(
            FirestoreSettings(project_id=project_id, credentials_path=config.firebase_credentials_path())
        )
        users_repository: UsersRepository = FirestoreUsersRepository(client)
        return users_repository, FirestoreTransactionsRepository(client, users_repository=users_repository)

    logger.warning("firestore_not_configured using in-memory repositories")
    users_repository = InMemoryUsersRepository(
        {_DEMO_USER_ID: {"profileName": "Demo User", "profileEmail": "demo@example.com", "plan": "pro"}}
    )
    return users_repository, InMemoryTransactionsRepository(_demo_rows(), users_repository=users_repository)


def build_backend_services() -> BackendServices:
    """Build every backend service; raises when the Stripe secret key is missing."""

    gateway = StripePaymentGateway(secret_key=config.stripe_secret_key())
    users_repository, transactions_repository = build_repositories()
    return BackendServices(
        users_repository=users_repository,
        transactions_repository=transactions_repository,
        gateway=gateway,
        checkout_service=CheckoutService(
            gateway=gateway,
            base_url=config.public_base_url(),
            webhook_secret=config.stripe_webhook_secret(),
        ),
    )
