"""Data models for BAA compliance analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from loguru import logger

DateLike = Union[str, date, datetime]


class AgreementType(str, Enum):
    """Party role the agreement is held with."""

    COVERED_ENTITY = "covered-entity"
    BUSINESS_ASSOCIATE = "business-associate"
    SUBCONTRACTOR = "subcontractor"

    @property
    def is_sensitive(self) -> bool:
        """Business associates and subcontractors handle PHI on someone's behalf."""
        return self in (AgreementType.BUSINESS_ASSOCIATE, AgreementType.SUBCONTRACTOR)

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").title()


class AgreementStatus(str, Enum):
    """Lifecycle status of an agreement."""

    ACTIVE = "active"
    DRAFT = "draft"
    EXPIRED = "expired"
    TERMINATED = "terminated"


class SignatureStatus(str, Enum):
    """E-signature progress."""

    UNSIGNED = "unsigned"
    PENDING = "pending"
    FULLY_EXECUTED = "fully-executed"


class SubcontractorApproval(str, Enum):
    """How the counterparty must handle its own subcontractors."""

    REQUIRED = "required"
    NOTIFICATION = "notification"
    NOT_APPLICABLE = "not-applicable"


class IssueSeverity(str, Enum):
    """Compliance issue severity levels."""

    CRITICAL = "critical"
    WARNING = "warning"


class ScoreBand(str, Enum):
    """Display band for a 0-100 compliance score."""

    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def for_score(cls, score: int) -> ScoreBand:
        if score >= 80:
            return cls.GOOD
        if score >= 60:
            return cls.FAIR
        return cls.POOR


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """Return the first key present in ``data`` (camelCase or snake_case)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _enum(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValueError(f"Invalid {field_name} {value!r}; expected one of: {allowed}") from exc


def _date_text(value: Optional[DateLike]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


@dataclass
class ComplianceTerms:
    """Compliance terms negotiated in a single agreement."""

    breach_notification_hours: int
    audit_rights: bool = True
    subcontractor_approval: SubcontractorApproval = SubcontractorApproval.REQUIRED
    data_retention: str = "6 years"
    termination_notice: int = 30

    @classmethod
    def from_dict(cls, data: dict) -> ComplianceTerms:
        return cls(
            breach_notification_hours=int(
                _pick(data, "breachNotificationHours", "breach_notification_hours", default=72)
            ),
            audit_rights=bool(_pick(data, "auditRights", "audit_rights", default=True)),
            subcontractor_approval=_enum(
                SubcontractorApproval,
                _pick(data, "subcontractorApproval", "subcontractor_approval", default="required"),
                "subcontractor approval",
            ),
            data_retention=str(_pick(data, "dataRetention", "data_retention", default="6 years")),
            termination_notice=int(
                _pick(data, "terminationNotice", "termination_notice", default=30)
            ),
        )

    def to_dict(self) -> dict:
        return {
            "breach_notification_hours": self.breach_notification_hours,
            "audit_rights": self.audit_rights,
            "subcontractor_approval": self.subcontractor_approval.value,
            "data_retention": self.data_retention,
            "termination_notice": self.termination_notice,
        }


def _breach_hours(value: Any, terms: ComplianceTerms, name: str) -> int:
    """Flattened breach window, falling back to the negotiated terms."""
    if value is None:
        return terms.breach_notification_hours
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(
            "Agreement {!r} has non-numeric breach notification {!r}; using {}h from its terms",
            name,
            value,
            terms.breach_notification_hours,
        )
        return terms.breach_notification_hours


@dataclass
class AgreementVersion:
    """One entry in an agreement's version history."""

    version: int
    date: str
    author: str
    changes: str

    @classmethod
    def from_dict(cls, data: dict) -> AgreementVersion:
        return cls(
            version=int(_pick(data, "version", "version_number")),
            date=_date_text(_pick(data, "date", "created_at", default="")) or "",
            author=str(_pick(data, "author", "author_name", default="")),
            changes=str(_pick(data, "changes", default="")),
        )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "date": self.date,
            "author": self.author,
            "changes": self.changes,
        }


@dataclass
class ExtractedData:
    """Provenance of machine-extracted terms. Informational only."""

    confidence: float
    method: str

    def to_dict(self) -> dict:
        return {"confidence": round(self.confidence, 1), "method": self.method}


@dataclass
class Agreement:
    """A Business Associate Agreement or related HIPAA agreement.

    ``breach_notification`` is the flattened breach window used when
    comparing agreements against each other; it mirrors
    ``compliance_terms.breach_notification_hours``.

    Dates are kept as supplied so that a malformed value can still be
    loaded and handled by the analyzer without aborting a whole batch.
    """

    id: Union[int, str]
    name: str
    type: AgreementType
    counterparty: str
    effective_date: DateLike
    expiration_date: DateLike
    status: AgreementStatus
    signature_status: SignatureStatus
    breach_notification: int
    compliance_terms: ComplianceTerms
    versions: list[AgreementVersion] = field(default_factory=list)
    current_version: int = 1
    email_alerts: bool = True
    extracted_data: Optional[ExtractedData] = None
    upload_date: Optional[DateLike] = None

    @property
    def is_sensitive(self) -> bool:
        return self.type.is_sensitive

    @property
    def is_fully_executed(self) -> bool:
        return self.signature_status == SignatureStatus.FULLY_EXECUTED

    @property
    def lacks_audit_rights(self) -> bool:
        return self.is_sensitive and not self.compliance_terms.audit_rights

    @classmethod
    def from_dict(cls, data: dict) -> Agreement:
        """Build an agreement from a record dict.

        Accepts the camelCase shape produced by the surrounding application
        as well as snake_case keys.

        Raises:
            ValueError: If a required field is missing or an enum value is unknown.
        """
        name = _pick(data, "name")
        if not name:
            raise ValueError("Agreement record is missing 'name'")

        terms = ComplianceTerms.from_dict(_pick(data, "complianceTerms", "compliance_terms", default={}))
        breach = _pick(data, "breachNotification", "breach_notification")
        extracted = _pick(data, "extractedData", "extracted_data")

        return cls(
            id=_pick(data, "id", default=name),
            name=str(name),
            type=_enum(AgreementType, _pick(data, "type"), "agreement type"),
            counterparty=str(_pick(data, "counterparty", default="")),
            effective_date=_pick(data, "effectiveDate", "effective_date", default=""),
            expiration_date=_pick(data, "expirationDate", "expiration_date", default=""),
            status=_enum(AgreementStatus, _pick(data, "status", default="draft"), "status"),
            signature_status=_enum(
                SignatureStatus,
                _pick(data, "signatureStatus", "signature_status", default="unsigned"),
                "signature status",
            ),
            breach_notification=_breach_hours(breach, terms, str(name)),
            compliance_terms=terms,
            versions=[AgreementVersion.from_dict(v) for v in _pick(data, "versions", default=[])],
            current_version=int(_pick(data, "currentVersion", "current_version", default=1)),
            email_alerts=bool(_pick(data, "emailAlerts", "email_alerts", default=True)),
            extracted_data=(
                ExtractedData(
                    confidence=float(extracted.get("confidence", 0)),
                    method=str(extracted.get("method", "")),
                )
                if extracted
                else None
            ),
            upload_date=_pick(data, "uploadDate", "upload_date"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "counterparty": self.counterparty,
            "effective_date": _date_text(self.effective_date),
            "expiration_date": _date_text(self.expiration_date),
            "status": self.status.value,
            "signature_status": self.signature_status.value,
            "breach_notification": self.breach_notification,
            "compliance_terms": self.compliance_terms.to_dict(),
            "versions": [v.to_dict() for v in self.versions],
            "current_version": self.current_version,
            "email_alerts": self.email_alerts,
            "extracted_data": self.extracted_data.to_dict() if self.extracted_data else None,
            "upload_date": _date_text(self.upload_date),
        }


@dataclass
class ComplianceIssue:
    """A single finding produced by the compliance analyzer."""

    type: IssueSeverity
    category: str
    description: str
    recommendation: str
    affected_agreements: list[str] = field(default_factory=list)

    @property
    def is_critical(self) -> bool:
        return self.type == IssueSeverity.CRITICAL

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "category": self.category,
            "description": self.description,
            "recommendation": self.recommendation,
            "affected_agreements": list(self.affected_agreements),
        }


@dataclass
class AgreementScore:
    """Compliance score for one agreement, with the deductions applied."""

    agreement_id: Union[int, str]
    agreement_name: str
    score: int
    deductions: list[str] = field(default_factory=list)

    @property
    def band(self) -> ScoreBand:
        return ScoreBand.for_score(self.score)

    def to_dict(self) -> dict:
        return {
            "agreement_id": self.agreement_id,
            "agreement_name": self.agreement_name,
            "score": self.score,
            "band": self.band.value,
            "deductions": list(self.deductions),
        }


@dataclass
class ComplianceReport:
    """Complete compliance picture for an organization's agreements."""

    reference_date: date
    issues: list[ComplianceIssue] = field(default_factory=list)
    scores: list[AgreementScore] = field(default_factory=list)
    overall_score: int = 100
    total_agreements: int = 0
    active_agreements: int = 0

    @property
    def critical_count(self) -> int:
        return sum(1 for i in self.issues if i.type == IssueSeverity.CRITICAL)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.type == IssueSeverity.WARNING)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    @property
    def overall_band(self) -> ScoreBand:
        return ScoreBand.for_score(self.overall_score)

    def to_dict(self) -> dict:
        return {
            "reference_date": self.reference_date.isoformat(),
            "overall_score": self.overall_score,
            "overall_band": self.overall_band.value,
            "total_agreements": self.total_agreements,
            "active_agreements": self.active_agreements,
            "critical_count": self.critical_count,
            "warning_count": self.warning_count,
            "issues": [i.to_dict() for i in self.issues],
            "scores": [s.to_dict() for s in self.scores],
        }
