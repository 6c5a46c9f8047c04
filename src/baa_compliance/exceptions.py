"""Exceptions raised by the agreement store, templates and term extraction."""

from __future__ import annotations


class BAAComplianceError(Exception):
    """Base class for all baa-compliance errors."""


class InvalidAgreementError(BAAComplianceError, ValueError):
    """An agreement failed validation on create or update."""


class AgreementNotFoundError(BAAComplianceError, KeyError):
    """No active agreement has the requested id."""

    def __init__(self, agreement_id: object) -> None:
        super().__init__(agreement_id)
        self.agreement_id = agreement_id

    def __str__(self) -> str:
        return f"Agreement not found: {self.agreement_id!r}"


class ExtractionError(BAAComplianceError):
    """The extraction model returned something that could not be used."""


class InvalidTemplateError(BAAComplianceError, ValueError):
    """A compliance template failed validation."""


class TemplateNotFoundError(BAAComplianceError, KeyError):
    """No template has the requested id."""

    def __init__(self, template_id: object) -> None:
        super().__init__(template_id)
        self.template_id = template_id

    def __str__(self) -> str:
        return f"Template not found: {self.template_id!r}"
