"""Compliance analyzer for HIPAA Business Associate Agreements.

The ``ComplianceAnalyzer`` inspects a snapshot of an organization's
agreements and returns actionable findings:

- breach notification cascade conflicts (a subcontractor allowed more hours
  than a business associate),
- agreements expiring soon,
- business associate and subcontractor agreements without audit rights,
- business associate agreements that ignore subcontractors while the
  organization uses them.

Findings are recomputed from scratch on every call. Critical issues are
returned before warnings; otherwise issues keep the order in which the
checks discovered them.

Example::

    analyzer = ComplianceAnalyzer()
    for issue in analyzer.analyze(agreements, now=date(2025, 6, 1)):
        print(issue.type.value, issue.category, issue.description)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime

from loguru import logger

from .config import RuleThresholds
from .dates import days_until, to_day
from .models import (
    Agreement,
    AgreementStatus,
    AgreementType,
    ComplianceIssue,
    ComplianceReport,
    IssueSeverity,
    SubcontractorApproval,
)
from .scoring import ComplianceScorer

BREACH_CASCADE = "Breach Notification Cascade"
AGREEMENT_EXPIRATION = "Agreement Expiration"
AUDIT_RIGHTS = "Audit Rights"
SUBCONTRACTOR_MANAGEMENT = "Subcontractor Management"

_SEVERITY_ORDER = {IssueSeverity.CRITICAL: 0, IssueSeverity.WARNING: 1}


class ComplianceAnalyzer:
    """Rule-based compliance checker over a set of agreements.

    The analyzer holds no state between calls and never modifies the
    agreements it is given.

    Args:
        thresholds: Custom rule thresholds (uses defaults if ``None``).
        scorer: Scorer used by :meth:`report` (uses default if ``None``).
    """

    def __init__(
        self,
        thresholds: RuleThresholds | None = None,
        scorer: ComplianceScorer | None = None,
    ) -> None:
        self._thresholds = thresholds or RuleThresholds()
        self._scorer = scorer or ComplianceScorer()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        agreements: Sequence[Agreement],
        now: date | datetime | None = None,
    ) -> list[ComplianceIssue]:
        """Run every compliance check and return the ordered findings.

        Args:
            agreements: Organization-scoped, non-deleted agreements.
            now: Reference date; the current date is used if omitted.

        Returns:
            Issues with all critical findings before all warnings.
        """
        today = to_day(now) if now is not None else date.today()

        issues: list[ComplianceIssue] = []
        issues.extend(self._check_breach_cascade(agreements))
        issues.extend(self._check_expiration(agreements, today))
        issues.extend(self._check_audit_rights(agreements))
        issues.extend(self._check_subcontractor_oversight(agreements))

        logger.debug(
            "Analyzed {} agreement(s) as of {}: {} issue(s)",
            len(agreements),
            today.isoformat(),
            len(issues),
        )
        # sorted() is stable, so rule order survives within each severity
        return sorted(issues, key=lambda issue: _SEVERITY_ORDER[issue.type])

    def report(
        self,
        agreements: Sequence[Agreement],
        now: date | datetime | None = None,
    ) -> ComplianceReport:
        """Analyze and score ``agreements`` into a single report."""
        today = to_day(now) if now is not None else date.today()
        scores = self._scorer.rank(agreements, today)

        return ComplianceReport(
            reference_date=today,
            issues=self.analyze(agreements, today),
            scores=scores,
            overall_score=self._scorer.average(scores),
            total_agreements=len(agreements),
            active_agreements=sum(1 for a in agreements if a.status == AgreementStatus.ACTIVE),
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _check_breach_cascade(self, agreements: Sequence[Agreement]) -> list[ComplianceIssue]:
        """Flag every subcontractor allowed more breach hours than any business associate."""
        business_associates = [a for a in agreements if a.type == AgreementType.BUSINESS_ASSOCIATE]
        subcontractors = [a for a in agreements if a.type == AgreementType.SUBCONTRACTOR]

        issues: list[ComplianceIssue] = []
        for sub in subcontractors:
            for ba in business_associates:
                if sub.breach_notification <= ba.breach_notification:
                    continue
                issues.append(
                    ComplianceIssue(
                        type=IssueSeverity.CRITICAL,
                        category=BREACH_CASCADE,
                        description=(
                            f"{sub.name} has breach notification requirement of "
                            f"{sub.breach_notification} hours, which exceeds the {ba.name} "
                            f"requirement of {ba.breach_notification} hours."
                        ),
                        recommendation=(
                            f"Ensure subcontractor breach notification hours "
                            f"({sub.breach_notification}h) do not exceed parent BA requirements "
                            f"({ba.breach_notification}h). Update {sub.name} to comply with "
                            f"stricter timelines."
                        ),
                        affected_agreements=[sub.name, ba.name],
                    )
                )
        return issues

    def _check_expiration(
        self,
        agreements: Sequence[Agreement],
        today: date,
    ) -> list[ComplianceIssue]:
        """Flag agreements expiring inside the configured window."""
        t = self._thresholds
        issues: list[ComplianceIssue] = []

        for agreement in agreements:
            try:
                remaining = days_until(agreement.expiration_date, today)
            except ValueError:
                logger.warning(
                    "Skipping expiration check for {!r}: unparseable expiration date {!r}",
                    agreement.name,
                    agreement.expiration_date,
                )
                continue

            if not 0 < remaining <= t.expiration_window_days:
                continue

            severity = (
                IssueSeverity.CRITICAL
                if remaining <= t.critical_expiration_days
                else IssueSeverity.WARNING
            )
            issues.append(
                ComplianceIssue(
                    type=severity,
                    category=AGREEMENT_EXPIRATION,
                    description=f"{agreement.name} expires in {remaining} days ({agreement.expiration_date}).",
                    recommendation=(
                        f"Initiate renewal process for {agreement.name}. Review terms and begin "
                        f"negotiations with {agreement.counterparty} at least "
                        f"{t.renewal_lead_days} days before expiration."
                    ),
                    affected_agreements=[agreement.name],
                )
            )
        return issues

    def _check_audit_rights(self, agreements: Sequence[Agreement]) -> list[ComplianceIssue]:
        """Flag business associate and subcontractor agreements without audit rights."""
        return [
            ComplianceIssue(
                type=IssueSeverity.WARNING,
                category=AUDIT_RIGHTS,
                description=(
                    f"{agreement.name} does not include audit rights for {agreement.counterparty}."
                ),
                recommendation=(
                    f"Add audit rights clause to {agreement.name} to enable periodic compliance "
                    f"verification with {agreement.counterparty}. This is recommended for HIPAA "
                    f"compliance."
                ),
                affected_agreements=[agreement.name],
            )
            for agreement in agreements
            if agreement.lacks_audit_rights
        ]

    def _check_subcontractor_oversight(
        self,
        agreements: Sequence[Agreement],
    ) -> list[ComplianceIssue]:
        """Flag BAs with no subcontractor approval term while any subcontractor exists.

        The check is organization-wide: a subcontractor agreement anywhere
        in the set triggers it, whichever business associate engaged it.
        """
        if not any(a.type == AgreementType.SUBCONTRACTOR for a in agreements):
            return []

        return [
            ComplianceIssue(
                type=IssueSeverity.WARNING,
                category=SUBCONTRACTOR_MANAGEMENT,
                description=(
                    f'{agreement.name} has subcontractor approval set to "not-applicable" '
                    f"but your organization uses subcontractors."
                ),
                recommendation=(
                    f"Update {agreement.name} to require subcontractor notification or approval "
                    f"to maintain HIPAA compliance oversight."
                ),
                affected_agreements=[agreement.name],
            )
            for agreement in agreements
            if agreement.type == AgreementType.BUSINESS_ASSOCIATE
            and agreement.compliance_terms.subcontractor_approval
            == SubcontractorApproval.NOT_APPLICABLE
        ]


def analyze_compliance(
    agreements: Sequence[Agreement],
    now: date | datetime | None = None,
) -> list[ComplianceIssue]:
    """Analyze ``agreements`` with the default thresholds."""
    return ComplianceAnalyzer().analyze(agreements, now)
