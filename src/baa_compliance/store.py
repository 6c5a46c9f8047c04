"""In-memory agreement repository.

Holds an organization's agreements, records a new version on every update,
and soft-removes agreements so they drop out of later analysis. Stored
agreements are replaced rather than modified, so a snapshot handed to the
analyzer is unaffected by later updates.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from loguru import logger

from .dates import add_days, parse_date, to_day
from .exceptions import AgreementNotFoundError, InvalidAgreementError
from .models import (
    Agreement,
    AgreementStatus,
    AgreementType,
    AgreementVersion,
    ComplianceTerms,
    DateLike,
    ExtractedData,
    SignatureStatus,
    SubcontractorApproval,
)

if TYPE_CHECKING:
    from .templates import ComplianceTemplate


AgreementId = Union[int, str]

DEFAULT_RETENTION_YEARS = 6

_AGREEMENT_FIELDS = {
    "name",
    "type",
    "counterparty",
    "effective_date",
    "expiration_date",
    "status",
    "signature_status",
    "email_alerts",
    "extracted_data",
}
_TERM_FIELDS = {
    "breach_notification_hours",
    "audit_rights",
    "subcontractor_approval",
    "data_retention",
    "termination_notice",
}


def parse_retention_years(text: str | None, default: int = DEFAULT_RETENTION_YEARS) -> int:
    """Pull the first whole number out of a retention description.

    ``"7 years"`` gives 7; ``"Until service termination"`` gives ``default``.
    """
    if not text:
        return default
    match = re.search(r"\d+", text)
    return int(match.group()) if match else default


@dataclass
class NewAgreement:
    """Form data for creating an agreement."""

    name: str
    type: AgreementType
    counterparty: str
    effective_date: DateLike
    expiration_date: DateLike
    breach_notification: int = 24
    audit_rights: bool = True
    subcontractor_approval: SubcontractorApproval = SubcontractorApproval.REQUIRED
    data_retention: str = "7 years"
    termination_notice: int = 30
    email_alerts: bool = True
    extracted_data: Optional[ExtractedData] = None

    def compliance_terms(self) -> ComplianceTerms:
        return ComplianceTerms(
            breach_notification_hours=self.breach_notification,
            audit_rights=self.audit_rights,
            subcontractor_approval=self.subcontractor_approval,
            data_retention=self.data_retention,
            termination_notice=self.termination_notice,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type.value,
            "counterparty": self.counterparty,
            "effective_date": str(self.effective_date),
            "expiration_date": str(self.expiration_date),
            "breach_notification": self.breach_notification,
            "audit_rights": self.audit_rights,
            "subcontractor_approval": self.subcontractor_approval.value,
            "data_retention": self.data_retention,
            "data_retention_years": parse_retention_years(self.data_retention),
            "termination_notice": self.termination_notice,
            "email_alerts": self.email_alerts,
        }


@dataclass
class AgreementFilters:
    """Criteria for :meth:`AgreementStore.filter`. ``None`` means any."""

    search: Optional[str] = None
    type: Optional[AgreementType] = None
    status: Optional[AgreementStatus] = None
    signature_status: Optional[SignatureStatus] = None
    expiring_within_days: Optional[int] = None


@dataclass
class _Entry:
    agreement: Agreement
    removed: bool = False


class AgreementStore:
    """Organization-scoped agreement repository.

    Example::

        store = AgreementStore()
        created = store.add(new_agreement, author="Sarah Johnson")
        store.update(created.id, {"audit_rights": False}, author="David Kim")
        issues = ComplianceAnalyzer().analyze(store.snapshot())
    """

    def __init__(self) -> None:
        self._entries: dict[AgreementId, _Entry] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> AgreementStore:
        """Build a store from agreement record dicts.

        Raises:
            ValueError: If a record is invalid or an id repeats.
        """
        store = cls()
        for record in records:
            agreement = Agreement.from_dict(record)
            if agreement.id in store._entries:
                raise ValueError(f"Duplicate agreement id: {agreement.id!r}")
            store._entries[agreement.id] = _Entry(agreement)
        return store

    @classmethod
    def load_json(cls, path: str | Path) -> AgreementStore:
        """Load agreements from a JSON file.

        The file may hold a list of records or an object with an
        ``"agreements"`` list.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid JSON or has the wrong shape.
        """
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"File not found: {p}")

        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Cannot parse {p} as JSON: {exc}") from exc

        if isinstance(data, dict):
            data = data.get("agreements")
        if not isinstance(data, list):
            raise ValueError(f"{p} must contain a list of agreements")

        store = cls.from_records(data)
        logger.debug("Loaded {} agreement(s) from {}", len(store), p)
        return store

    def __len__(self) -> int:
        return sum(1 for e in self._entries.values() if not e.removed)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, agreement_id: AgreementId) -> Agreement:
        """Return an active agreement.

        Raises:
            AgreementNotFoundError: If the id is unknown or was removed.
        """
        entry = self._entries.get(agreement_id)
        if entry is None or entry.removed:
            raise AgreementNotFoundError(agreement_id)
        return entry.agreement

    def snapshot(self) -> list[Agreement]:
        """Active agreements in insertion order."""
        return [e.agreement for e in self._entries.values() if not e.removed]

    def filter(
        self,
        filters: AgreementFilters,
        today: date | datetime | None = None,
    ) -> list[Agreement]:
        """Return active agreements matching every given criterion."""
        day = to_day(today) if today is not None else date.today()
        results: list[Agreement] = []

        for agreement in self.snapshot():
            if filters.search:
                needle = filters.search.lower()
                if needle not in agreement.name.lower() and needle not in agreement.counterparty.lower():
                    continue
            if filters.type is not None and agreement.type != filters.type:
                continue
            if filters.status is not None and agreement.status != filters.status:
                continue
            if filters.signature_status is not None and agreement.signature_status != filters.signature_status:
                continue
            if filters.expiring_within_days is not None:
                try:
                    expires = parse_date(agreement.expiration_date)
                except ValueError:
                    continue
                if not day <= expires <= add_days(day, filters.expiring_within_days):
                    continue
            results.append(agreement)

        return results

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(
        self,
        new_agreement: NewAgreement,
        author: str,
        today: date | datetime | None = None,
    ) -> Agreement:
        """Create a draft, unsigned agreement with its initial version.

        Raises:
            InvalidAgreementError: If the form data fails validation.
        """
        day = to_day(today) if today is not None else date.today()
        self._validate(
            new_agreement.name,
            new_agreement.effective_date,
            new_agreement.expiration_date,
            new_agreement.breach_notification,
            new_agreement.termination_notice,
        )

        agreement = Agreement(
            id=self._next_id(),
            name=new_agreement.name.strip(),
            type=new_agreement.type,
            counterparty=new_agreement.counterparty,
            effective_date=new_agreement.effective_date,
            expiration_date=new_agreement.expiration_date,
            status=AgreementStatus.DRAFT,
            signature_status=SignatureStatus.UNSIGNED,
            breach_notification=new_agreement.breach_notification,
            compliance_terms=new_agreement.compliance_terms(),
            versions=[
                AgreementVersion(
                    version=1,
                    date=day.isoformat(),
                    author=author,
                    changes="Initial agreement created",
                )
            ],
            current_version=1,
            email_alerts=new_agreement.email_alerts,
            extracted_data=new_agreement.extracted_data,
            upload_date=day.isoformat(),
        )
        self._entries[agreement.id] = _Entry(agreement)
        logger.info("Created agreement {} ({!r})", agreement.id, agreement.name)
        return agreement

    def add_from_template(
        self,
        template: ComplianceTemplate,
        name: str,
        type: AgreementType,
        counterparty: str,
        effective_date: DateLike,
        expiration_date: DateLike,
        author: str,
        today: date | datetime | None = None,
    ) -> Agreement:
        """Create an agreement whose compliance terms come from ``template``.

        Raises:
            InvalidAgreementError: If the resulting form data fails validation.
        """
        new_agreement = template.new_agreement(
            name=name,
            type=type,
            counterparty=counterparty,
            effective_date=effective_date,
            expiration_date=expiration_date,
        )
        logger.debug("Pre-filling {!r} from template {!r}", name, template.name)
        return self.add(new_agreement, author=author, today=today)

    def update(
        self,
        agreement_id: AgreementId,
        changes: dict[str, Any],
        author: str,
        description: str = "Agreement updated",
        today: date | datetime | None = None,
    ) -> Agreement:
        """Apply ``changes`` and append a new version.

        ``changes`` uses snake_case field names of :class:`Agreement` and
        :class:`ComplianceTerms`; ``breach_notification`` and
        ``breach_notification_hours`` are interchangeable and kept in sync.

        Raises:
            AgreementNotFoundError: If the id is unknown or was removed.
            InvalidAgreementError: If a field is unknown or the result is invalid.
        """
        current = self.get(agreement_id)
        day = to_day(today) if today is not None else date.today()

        pending = dict(changes)
        if "breach_notification" in pending:
            pending["breach_notification_hours"] = pending.pop("breach_notification")

        unknown = set(pending) - _AGREEMENT_FIELDS - _TERM_FIELDS
        if unknown:
            raise InvalidAgreementError(f"Unknown agreement field(s): {', '.join(sorted(unknown))}")

        try:
            agreement_changes = {
                k: self._coerce(k, v) for k, v in pending.items() if k in _AGREEMENT_FIELDS
            }
            term_changes = {k: self._coerce(k, v) for k, v in pending.items() if k in _TERM_FIELDS}
        except ValueError as exc:
            raise InvalidAgreementError(str(exc)) from exc

        terms = replace(current.compliance_terms, **term_changes)
        next_version = current.current_version + 1
        updated = replace(
            current,
            **agreement_changes,
            compliance_terms=terms,
            breach_notification=terms.breach_notification_hours,
            versions=[
                *current.versions,
                AgreementVersion(
                    version=next_version,
                    date=day.isoformat(),
                    author=author,
                    changes=description,
                ),
            ],
            current_version=next_version,
        )
        self._validate(
            updated.name,
            updated.effective_date,
            updated.expiration_date,
            updated.breach_notification,
            updated.compliance_terms.termination_notice,
        )

        self._entries[agreement_id] = _Entry(updated)
        logger.info("Updated agreement {} to version {}", agreement_id, next_version)
        return updated

    def remove(self, agreement_id: AgreementId) -> None:
        """Soft-remove an agreement.

        Raises:
            AgreementNotFoundError: If the id is unknown or already removed.
        """
        self.get(agreement_id)
        self._entries[agreement_id].removed = True
        logger.info("Removed agreement {}", agreement_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _next_id(self) -> int:
        numeric = [k for k in self._entries if isinstance(k, int)]
        return max(numeric) + 1 if numeric else 1

    @staticmethod
    def _coerce(name: str, value: Any) -> Any:
        enum_fields = {
            "type": AgreementType,
            "status": AgreementStatus,
            "signature_status": SignatureStatus,
            "subcontractor_approval": SubcontractorApproval,
        }
        if name in enum_fields and not isinstance(value, enum_fields[name]):
            return enum_fields[name](value)
        return value

    @staticmethod
    def _validate(
        name: str,
        effective_date: DateLike,
        expiration_date: DateLike,
        breach_hours: int,
        termination_notice: int,
    ) -> None:
        if not name or not name.strip():
            raise InvalidAgreementError("Agreement name is required")
        if breach_hours <= 0:
            raise InvalidAgreementError("Breach notification hours must be positive")
        if termination_notice <= 0:
            raise InvalidAgreementError("Termination notice days must be positive")
        try:
            effective = parse_date(effective_date)
            expiration = parse_date(expiration_date)
        except ValueError as exc:
            raise InvalidAgreementError(str(exc)) from exc
        if expiration <= effective:
            raise InvalidAgreementError("Expiration date must be after the effective date")
