"""Compliance-term templates.

A template is a named set of compliance terms used to pre-fill new
agreements. Every library starts with the built-in templates below;
organizations add, edit and delete their own alongside them.

Example::

    library = TemplateLibrary()
    strict = library.find("Strict Compliance BAA")
    store.add_from_template(
        strict,
        name="Imaging Partners BAA",
        type=AgreementType.BUSINESS_ASSOCIATE,
        counterparty="Imaging Partners LLC",
        effective_date="2025-01-01",
        expiration_date="2027-01-01",
        author="Sarah Johnson",
    )
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Optional, Union

from loguru import logger

from .exceptions import InvalidTemplateError, TemplateNotFoundError
from .models import AgreementType, ComplianceTerms, DateLike, SubcontractorApproval
from .store import NewAgreement

TemplateId = Union[int, str]


def _approval(value: Any) -> SubcontractorApproval:
    """Accept an approval enum, its value, or the boolean stored with templates."""
    if isinstance(value, SubcontractorApproval):
        return value
    if isinstance(value, bool):
        return SubcontractorApproval.REQUIRED if value else SubcontractorApproval.NOT_APPLICABLE
    try:
        return SubcontractorApproval(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidTemplateError(f"Invalid subcontractor approval {value!r}") from exc


@dataclass(frozen=True)
class ComplianceTemplate:
    """Reusable compliance terms for new agreements."""

    name: str
    description: str
    breach_notification_hours: int
    audit_rights: bool = True
    subcontractor_approval: SubcontractorApproval = SubcontractorApproval.REQUIRED
    data_retention_years: int = 6
    termination_notice_days: int = 30
    id: Optional[TemplateId] = None
    builtin: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> ComplianceTemplate:
        """Build a template from ``{"name", "description", "terms": {...}}``.

        Terms may also be given at the top level.

        Raises:
            InvalidTemplateError: If a term is missing or not a number.
        """
        terms = data.get("terms") or data
        try:
            return cls(
                name=str(data.get("name") or ""),
                description=str(data.get("description") or ""),
                breach_notification_hours=int(terms["breach_notification_hours"]),
                audit_rights=bool(terms.get("audit_rights", True)),
                subcontractor_approval=_approval(terms.get("subcontractor_approval", True)),
                data_retention_years=int(terms.get("data_retention_years", 6)),
                termination_notice_days=int(terms.get("termination_notice_days", 30)),
                id=data.get("id"),
            )
        except KeyError as exc:
            raise InvalidTemplateError(f"Template is missing {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise InvalidTemplateError(f"Invalid template terms: {exc}") from exc

    def compliance_terms(self) -> ComplianceTerms:
        return ComplianceTerms(
            breach_notification_hours=self.breach_notification_hours,
            audit_rights=self.audit_rights,
            subcontractor_approval=self.subcontractor_approval,
            data_retention=f"{self.data_retention_years} years",
            termination_notice=self.termination_notice_days,
        )

    def new_agreement(
        self,
        name: str,
        type: AgreementType,
        counterparty: str,
        effective_date: DateLike,
        expiration_date: DateLike,
        email_alerts: bool = True,
    ) -> NewAgreement:
        """Form data for a new agreement pre-filled with this template's terms."""
        return NewAgreement(
            name=name,
            type=type,
            counterparty=counterparty,
            effective_date=effective_date,
            expiration_date=expiration_date,
            breach_notification=self.breach_notification_hours,
            audit_rights=self.audit_rights,
            subcontractor_approval=self.subcontractor_approval,
            data_retention=f"{self.data_retention_years} years",
            termination_notice=self.termination_notice_days,
            email_alerts=email_alerts,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "builtin": self.builtin,
            "terms": {
                "breach_notification_hours": self.breach_notification_hours,
                "audit_rights": self.audit_rights,
                "subcontractor_approval": self.subcontractor_approval.value,
                "data_retention_years": self.data_retention_years,
                "termination_notice_days": self.termination_notice_days,
            },
        }


DEFAULT_TEMPLATES: tuple[ComplianceTemplate, ...] = (
    ComplianceTemplate(
        name="Standard BAA",
        description=(
            "HIPAA-compliant Business Associate Agreement with standard compliance terms. "
            "Suitable for most healthcare data partnerships."
        ),
        breach_notification_hours=24,
        audit_rights=True,
        subcontractor_approval=SubcontractorApproval.REQUIRED,
        data_retention_years=7,
        termination_notice_days=30,
        builtin=True,
    ),
    ComplianceTemplate(
        name="Strict Compliance BAA",
        description=(
            "Enhanced compliance terms with shorter breach notification windows and longer "
            "retention periods. For high-sensitivity data relationships."
        ),
        breach_notification_hours=12,
        audit_rights=True,
        subcontractor_approval=SubcontractorApproval.REQUIRED,
        data_retention_years=10,
        termination_notice_days=60,
        builtin=True,
    ),
    ComplianceTemplate(
        name="Subcontractor BAA",
        description=(
            "Designed for subcontractor relationships with relaxed terms appropriate for "
            "limited data access scenarios."
        ),
        breach_notification_hours=48,
        audit_rights=True,
        subcontractor_approval=SubcontractorApproval.NOT_APPLICABLE,
        data_retention_years=3,
        termination_notice_days=15,
        builtin=True,
    ),
)

_EDITABLE_FIELDS = {f.name for f in fields(ComplianceTemplate)} - {"id", "builtin"}


class TemplateLibrary:
    """An organization's templates: the built-in set plus its own.

    Built-in templates can be used but not edited or deleted.
    """

    def __init__(self, include_defaults: bool = True) -> None:
        self._templates: dict[TemplateId, ComplianceTemplate] = {}
        if include_defaults:
            for template in DEFAULT_TEMPLATES:
                template_id = self._next_id()
                self._templates[template_id] = replace(template, id=template_id)

    def __len__(self) -> int:
        return len(self._templates)

    def list_templates(self) -> list[ComplianceTemplate]:
        """All templates in creation order, built-ins first."""
        return list(self._templates.values())

    def get(self, template_id: TemplateId) -> ComplianceTemplate:
        """Return a template by id.

        Raises:
            TemplateNotFoundError: If no template has that id.
        """
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateNotFoundError(template_id) from None

    def find(self, name: str) -> Optional[ComplianceTemplate]:
        """Case-insensitive lookup by name."""
        needle = name.strip().lower()
        for template in self._templates.values():
            if template.name.lower() == needle:
                return template
        return None

    def create(self, template: ComplianceTemplate) -> ComplianceTemplate:
        """Add a custom template and assign it the next id.

        Raises:
            InvalidTemplateError: If the terms are invalid or the name is taken.
        """
        self._validate(template)
        self._check_unique(template.name)

        created = replace(template, id=self._next_id(), builtin=False)
        self._templates[created.id] = created
        logger.info("Created template {} ({!r})", created.id, created.name)
        return created

    def update(self, template_id: TemplateId, changes: dict[str, Any]) -> ComplianceTemplate:
        """Apply ``changes`` to a custom template.

        Raises:
            TemplateNotFoundError: If no template has that id.
            InvalidTemplateError: If the template is built-in, a field is
                unknown, or the result is invalid.
        """
        current = self.get(template_id)
        if current.builtin:
            raise InvalidTemplateError(f"Built-in template {current.name!r} cannot be modified")

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidTemplateError(f"Unknown template field(s): {', '.join(sorted(unknown))}")

        pending = dict(changes)
        for key in ("breach_notification_hours", "data_retention_years", "termination_notice_days"):
            if key in pending:
                try:
                    pending[key] = int(pending[key])
                except (TypeError, ValueError) as exc:
                    raise InvalidTemplateError(f"{key} must be a whole number") from exc
        if "subcontractor_approval" in pending:
            pending["subcontractor_approval"] = _approval(pending["subcontractor_approval"])

        updated = replace(current, **pending)
        self._validate(updated)
        if updated.name.strip().lower() != current.name.strip().lower():
            self._check_unique(updated.name)

        self._templates[template_id] = updated
        logger.info("Updated template {} ({!r})", template_id, updated.name)
        return updated

    def delete(self, template_id: TemplateId) -> None:
        """Delete a custom template.

        Raises:
            TemplateNotFoundError: If no template has that id.
            InvalidTemplateError: If the template is built-in.
        """
        template = self.get(template_id)
        if template.builtin:
            raise InvalidTemplateError(f"Built-in template {template.name!r} cannot be deleted")
        del self._templates[template_id]
        logger.info("Deleted template {} ({!r})", template_id, template.name)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _next_id(self) -> int:
        numeric = [k for k in self._templates if isinstance(k, int)]
        return max(numeric) + 1 if numeric else 1

    def _check_unique(self, name: str) -> None:
        if self.find(name) is not None:
            raise InvalidTemplateError(f"A template named {name.strip()!r} already exists")

    @staticmethod
    def _validate(template: ComplianceTemplate) -> None:
        if not template.name or not template.name.strip():
            raise InvalidTemplateError("Template name is required")
        if template.breach_notification_hours <= 0:
            raise InvalidTemplateError("Breach notification hours must be positive")
        if template.data_retention_years <= 0:
            raise InvalidTemplateError("Data retention years must be positive")
        if template.termination_notice_days <= 0:
            raise InvalidTemplateError("Termination notice days must be positive")
