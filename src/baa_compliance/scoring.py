"""Compliance scoring for individual agreements and whole organizations.

Each agreement starts at 100 and loses points for every condition that
applies to it; conditions are independent and may stack, and the result is
floored at 0. The organization score is the mean of the per-agreement
scores, rounded half up, and is 100 for an organization with no agreements.

Typical usage::

    scorer = ComplianceScorer()
    print(scorer.score_agreement(agreement, now=date(2025, 6, 1)))
    print(scorer.score_organization(agreements, now=date(2025, 6, 1)))
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import date, datetime

from loguru import logger

from .config import ScoringDeductions
from .dates import is_expiring_within, to_day
from .models import Agreement, AgreementScore, AgreementStatus


class ComplianceScorer:
    """Score agreements on a 0-100 scale.

    Args:
        deductions: Custom point deductions (uses defaults if ``None``).
    """

    def __init__(self, deductions: ScoringDeductions | None = None) -> None:
        self._deductions = deductions or ScoringDeductions()

    @property
    def deductions(self) -> ScoringDeductions:
        return self._deductions

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(self, agreement: Agreement, now: date | datetime) -> AgreementScore:
        """Score one agreement and record which deductions applied."""
        d = self._deductions
        score = 100
        reasons: list[str] = []

        if not agreement.is_fully_executed:
            score -= d.not_fully_executed
            reasons.append(f"Not fully executed (-{d.not_fully_executed})")

        if agreement.status == AgreementStatus.EXPIRED:
            score -= d.expired
            reasons.append(f"Expired (-{d.expired})")

        try:
            expiring = is_expiring_within(agreement.expiration_date, now, d.expiring_soon_days)
        except ValueError:
            logger.warning(
                "Skipping expiration deduction for {!r}: unparseable expiration date {!r}",
                agreement.name,
                agreement.expiration_date,
            )
            expiring = False
        if expiring:
            score -= d.expiring_soon
            reasons.append(
                f"Expires within {d.expiring_soon_days} days (-{d.expiring_soon})"
            )

        if agreement.lacks_audit_rights:
            score -= d.missing_audit_rights
            reasons.append(f"Missing audit rights (-{d.missing_audit_rights})")

        if agreement.breach_notification > d.max_breach_notification_hours:
            score -= d.lax_breach_notification
            reasons.append(
                f"Breach notification over {d.max_breach_notification_hours}h "
                f"(-{d.lax_breach_notification})"
            )

        return AgreementScore(
            agreement_id=agreement.id,
            agreement_name=agreement.name,
            score=max(0, score),
            deductions=reasons,
        )

    def score_agreement(self, agreement: Agreement, now: date | datetime) -> int:
        """Return the 0-100 compliance score for one agreement."""
        return self.evaluate(agreement, now).score

    def score_organization(self, agreements: Sequence[Agreement], now: date | datetime) -> int:
        """Return the rounded mean score across ``agreements`` (100 if empty)."""
        today = to_day(now)
        return self.average([self.evaluate(a, today) for a in agreements])

    @staticmethod
    def average(scores: Sequence[AgreementScore]) -> int:
        """Rounded mean of already computed scores (100 if empty)."""
        if not scores:
            return 100
        return _round_half_up(sum(s.score for s in scores) / len(scores))

    def rank(self, agreements: Sequence[Agreement], now: date | datetime) -> list[AgreementScore]:
        """Score every agreement, lowest score first (ties keep input order)."""
        today = to_day(now)
        scores = [self.evaluate(a, today) for a in agreements]
        return sorted(scores, key=lambda s: s.score)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


_default_scorer = ComplianceScorer()


def score_agreement(agreement: Agreement, now: date | datetime) -> int:
    """Score one agreement with the default deductions."""
    return _default_scorer.score_agreement(agreement, now)


def score_organization(agreements: Sequence[Agreement], now: date | datetime) -> int:
    """Score an organization with the default deductions."""
    return _default_scorer.score_organization(agreements, now)
