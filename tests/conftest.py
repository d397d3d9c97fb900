"""
Pytest configuration and shared fixtures.
"""

import random
from collections.abc import Callable
from unittest.mock import AsyncMock, Mock

import pytest

from verification_poller.clients.status_api import StatusApiClient
from verification_poller.models.session import PollingConfig, RetryPolicy
from verification_poller.models.verification import (
    DocumentVerificationResult,
    VerificationStatus,
)
from verification_poller.services.poller import StatusPoller
from verification_poller.services.session_store import SessionStore
from verification_poller.services.tracker import DocumentTracker


@pytest.fixture
def make_result() -> Callable[..., DocumentVerificationResult]:
    """Factory for verification results as the status endpoint returns them."""

    def _make(
        document_id: str, status: VerificationStatus = VerificationStatus.verified
    ) -> DocumentVerificationResult:
        return DocumentVerificationResult(
            document_id=document_id,
            verification_status=status,
            confidence_score=92.5,
            is_blurred=False,
            is_correct_type=True,
            status_color="green",
            message="Document verified",
            requires_user_confirmation=False,
        )

    return _make


@pytest.fixture
def fast_config() -> Callable[..., PollingConfig]:
    """Factory for polling configs with millisecond-scale delays and no jitter."""

    def _make(**overrides) -> PollingConfig:
        values = {
            "initial_delay_ms": 0,
            "retry_intervals_ms": (20, 50),
            "max_retries": 3,
            "backoff_multiplier": 1.5,
            "timeout_ms": 2000,
            "jitter_max_ms": 0,
        }
        values.update(overrides)
        return PollingConfig(**values)

    return _make


@pytest.fixture
def tracker() -> DocumentTracker:
    return DocumentTracker()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(removal_grace_seconds=5.0)


@pytest.fixture
def status_client() -> Mock:
    """Mock status client; tests set get_status side effects."""
    client = Mock(spec=StatusApiClient)
    client.get_status = AsyncMock()
    return client


@pytest.fixture
def poller(
    status_client: Mock,
    store: SessionStore,
    tracker: DocumentTracker,
    fast_config: Callable[..., PollingConfig],
) -> StatusPoller:
    return StatusPoller(
        status_client,
        store,
        tracker,
        default_config=fast_config(),
        policy=RetryPolicy(),
        rng=random.Random(42),
    )
