"""Shared test fixtures for baa-compliance tests."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from typing import Callable

import pytest
from loguru import logger

from baa_compliance.models import (
    Agreement,
    AgreementStatus,
    AgreementType,
    AgreementVersion,
    ComplianceTerms,
    SignatureStatus,
    SubcontractorApproval,
)
from baa_compliance.store import AgreementStore

# Reference date for the sample agreements file
SAMPLE_NOW = date(2025, 12, 1)


@pytest.fixture
def now() -> date:
    """Fixed reference date for rule and scoring tests."""
    return date(2025, 6, 1)


@pytest.fixture
def make_agreement(now: date) -> Callable[..., Agreement]:
    """Factory for agreements that are compliant unless told otherwise.

    Defaults: business associate, 24h breach window, audit rights,
    subcontractor approval required, active, fully executed, expiring
    two years after ``now``.
    """
    counter = iter(range(1, 1000))

    def _make(
        name: str = "Test BAA",
        type: AgreementType = AgreementType.BUSINESS_ASSOCIATE,
        breach: int = 24,
        audit_rights: bool = True,
        approval: SubcontractorApproval = SubcontractorApproval.REQUIRED,
        expiration: object = None,
        status: AgreementStatus = AgreementStatus.ACTIVE,
        signature: SignatureStatus = SignatureStatus.FULLY_EXECUTED,
        counterparty: str = "Counterparty Inc.",
    ) -> Agreement:
        if expiration is None:
            expiration = (now + timedelta(days=730)).isoformat()
        return Agreement(
            id=next(counter),
            name=name,
            type=type,
            counterparty=counterparty,
            effective_date="2024-01-01",
            expiration_date=expiration,
            status=status,
            signature_status=signature,
            breach_notification=breach,
            compliance_terms=ComplianceTerms(
                breach_notification_hours=breach,
                audit_rights=audit_rights,
                subcontractor_approval=approval,
                data_retention="7 years",
                termination_notice=30,
            ),
            versions=[AgreementVersion(1, "2024-01-01", "Sarah Johnson", "Initial agreement created")],
        )

    return _make


@pytest.fixture
def sample_agreements_path() -> Path:
    """Path to the sample agreements JSON file."""
    return Path(__file__).parent.parent / "examples" / "sample_agreements.json"


@pytest.fixture
def sample_store(sample_agreements_path: Path) -> AgreementStore:
    return AgreementStore.load_json(sample_agreements_path)


@pytest.fixture
def sample_now() -> date:
    return SAMPLE_NOW


@pytest.fixture
def log_messages() -> list[str]:
    """Collect WARNING-and-above log messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(str(m)), level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)
