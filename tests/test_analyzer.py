"""Tests for the ComplianceAnalyzer rule engine."""

from __future__ import annotations

import copy
from datetime import date, datetime, timedelta

import pytest

from baa_compliance.analyzer import (
    AGREEMENT_EXPIRATION,
    AUDIT_RIGHTS,
    BREACH_CASCADE,
    SUBCONTRACTOR_MANAGEMENT,
    ComplianceAnalyzer,
    analyze_compliance,
)
from baa_compliance.config import RuleThresholds
from baa_compliance.models import (
    AgreementType,
    ComplianceReport,
    IssueSeverity,
    SubcontractorApproval,
)
from baa_compliance.store import AgreementStore

BA = AgreementType.BUSINESS_ASSOCIATE
SUB = AgreementType.SUBCONTRACTOR
CE = AgreementType.COVERED_ENTITY


@pytest.fixture
def analyzer() -> ComplianceAnalyzer:
    return ComplianceAnalyzer()


def _in(now: date, days: int) -> str:
    return (now + timedelta(days=days)).isoformat()


# ---------------------------------------------------------------------------
# Breach notification cascade
# ---------------------------------------------------------------------------


class TestBreachCascade:
    def test_subcontractor_exceeding_ba_is_critical(self, analyzer, make_agreement, now) -> None:
        ba = make_agreement("Primary BAA", type=BA, breach=24)
        sub = make_agreement("Cloud Sub BAA", type=SUB, breach=48)

        issues = analyzer.analyze([ba, sub], now)

        assert len(issues) == 1
        issue = issues[0]
        assert issue.type == IssueSeverity.CRITICAL
        assert issue.category == BREACH_CASCADE
        assert issue.affected_agreements == ["Cloud Sub BAA", "Primary BAA"]
        assert "48 hours" in issue.description
        assert "24 hours" in issue.description

    def test_equal_windows_not_flagged(self, analyzer, make_agreement, now) -> None:
        ba = make_agreement("Primary BAA", type=BA, breach=48)
        sub = make_agreement("Cloud Sub BAA", type=SUB, breach=48)
        assert analyzer.analyze([ba, sub], now) == []

    def test_stricter_subcontractor_not_flagged(self, analyzer, make_agreement, now) -> None:
        ba = make_agreement("Primary BAA", type=BA, breach=72)
        sub = make_agreement("Cloud Sub BAA", type=SUB, breach=24)
        assert analyzer.analyze([ba, sub], now) == []

    def test_one_issue_per_offending_pair(self, analyzer, make_agreement, now) -> None:
        agreements = [
            make_agreement("Sub One", type=SUB, breach=96),
            make_agreement("Sub Two", type=SUB, breach=12),
            make_agreement("BA One", type=BA, breach=24),
            make_agreement("BA Two", type=BA, breach=48),
        ]

        issues = [i for i in analyzer.analyze(agreements, now) if i.category == BREACH_CASCADE]

        assert [i.affected_agreements for i in issues] == [
            ["Sub One", "BA One"],
            ["Sub One", "BA Two"],
        ]

    def test_covered_entity_ignored(self, analyzer, make_agreement, now) -> None:
        ce = make_agreement("Hospital Agreement", type=CE, breach=24)
        sub = make_agreement("Cloud Sub BAA", type=SUB, breach=96)
        assert all(i.category != BREACH_CASCADE for i in analyzer.analyze([ce, sub], now))

    def test_uses_flattened_breach_window(self, analyzer, make_agreement, now) -> None:
        ba = make_agreement("Primary BAA", type=BA, breach=24)
        sub = make_agreement("Cloud Sub BAA", type=SUB, breach=24)
        sub.breach_notification = 48
        assert len(analyzer.analyze([ba, sub], now)) == 1


# ---------------------------------------------------------------------------
# Expiration window
# ---------------------------------------------------------------------------


class TestExpiration:
    def test_within_30_days_is_critical(self, analyzer, make_agreement, now) -> None:
        agreement = make_agreement("Vendor BAA", expiration=_in(now, 25))

        issues = analyzer.analyze([agreement], now)

        assert len(issues) == 1
        assert issues[0].type == IssueSeverity.CRITICAL
        assert issues[0].category == AGREEMENT_EXPIRATION
        assert "expires in 25 days" in issues[0].description
        assert _in(now, 25) in issues[0].description

    def test_within_90_days_is_warning(self, analyzer, make_agreement, now) -> None:
        agreement = make_agreement("Vendor BAA", expiration=_in(now, 60))

        issues = analyzer.analyze([agreement], now)

        assert len(issues) == 1
        assert issues[0].type == IssueSeverity.WARNING
        assert "expires in 60 days" in issues[0].description

    @pytest.mark.parametrize(
        ("days", "expected"),
        [
            (-5, None),
            (0, None),
            (1, IssueSeverity.CRITICAL),
            (30, IssueSeverity.CRITICAL),
            (31, IssueSeverity.WARNING),
            (90, IssueSeverity.WARNING),
            (91, None),
        ],
    )
    def test_window_boundaries(self, analyzer, make_agreement, now, days, expected) -> None:
        agreement = make_agreement("Vendor BAA", expiration=_in(now, days))
        issues = analyzer.analyze([agreement], now)

        if expected is None:
            assert issues == []
        else:
            assert [i.type for i in issues] == [expected]

    def test_time_of_day_ignored(self, analyzer, make_agreement) -> None:
        late = datetime(2025, 6, 1, 23, 59)
        agreement = make_agreement("Vendor BAA", expiration="2025-06-26")

        issues = analyzer.analyze([agreement], late)

        assert "expires in 25 days" in issues[0].description

    def test_description_keeps_stored_date_text(self, analyzer, make_agreement, now) -> None:
        agreement = make_agreement("Vendor BAA", expiration="2025-06-26T09:00:00Z")

        issue = analyzer.analyze([agreement], now)[0]

        assert issue.description == "Vendor BAA expires in 25 days (2025-06-26T09:00:00Z)."

    def test_recommendation_names_counterparty(self, analyzer, make_agreement, now) -> None:
        agreement = make_agreement("Vendor BAA", expiration=_in(now, 45), counterparty="Vendor Co.")
        issue = analyzer.analyze([agreement], now)[0]
        assert "Vendor Co." in issue.recommendation
        assert "60 days" in issue.recommendation

    def test_applies_to_every_agreement_type(self, analyzer, make_agreement, now) -> None:
        agreements = [
            make_agreement("CE", type=CE, expiration=_in(now, 10)),
            make_agreement("BA", type=BA, expiration=_in(now, 10)),
            make_agreement("SUB", type=SUB, expiration=_in(now, 10)),
        ]
        issues = analyzer.analyze(agreements, now)
        assert [i.affected_agreements for i in issues] == [["CE"], ["BA"], ["SUB"]]

    def test_custom_window(self, make_agreement, now) -> None:
        analyzer = ComplianceAnalyzer(thresholds=RuleThresholds(expiration_window_days=120))
        agreement = make_agreement("Vendor BAA", expiration=_in(now, 100))
        assert len(analyzer.analyze([agreement], now)) == 1

    def test_malformed_date_skipped_and_logged(
        self, analyzer, make_agreement, now, log_messages
    ) -> None:
        broken = make_agreement("Broken BAA", expiration="not-a-date", audit_rights=False)
        expiring = make_agreement("Vendor BAA", expiration=_in(now, 10))

        issues = analyzer.analyze([broken, expiring], now)

        categories = [(i.category, i.affected_agreements) for i in issues]
        assert (AGREEMENT_EXPIRATION, ["Vendor BAA"]) in categories
        assert (AUDIT_RIGHTS, ["Broken BAA"]) in categories
        assert any("Broken BAA" in m for m in log_messages)


# ---------------------------------------------------------------------------
# Audit rights
# ---------------------------------------------------------------------------


class TestAuditRights:
    def test_business_associate_without_audit_rights(self, analyzer, make_agreement, now) -> None:
        agreement = make_agreement("Billing BAA", type=BA, audit_rights=False, counterparty="Billing LLC")

        issues = analyzer.analyze([agreement], now)

        assert len(issues) == 1
        assert issues[0].type == IssueSeverity.WARNING
        assert issues[0].category == AUDIT_RIGHTS
        assert issues[0].description == "Billing BAA does not include audit rights for Billing LLC."

    def test_subcontractor_without_audit_rights(self, analyzer, make_agreement, now) -> None:
        agreement = make_agreement("Cloud Sub BAA", type=SUB, audit_rights=False)
        assert [i.category for i in analyzer.analyze([agreement], now)] == [AUDIT_RIGHTS]

    def test_covered_entity_exempt(self, analyzer, make_agreement, now) -> None:
        agreement = make_agreement("Hospital Agreement", type=CE, audit_rights=False)
        assert analyzer.analyze([agreement], now) == []


# ---------------------------------------------------------------------------
# Subcontractor oversight
# ---------------------------------------------------------------------------


class TestSubcontractorOversight:
    def test_not_applicable_with_subcontractors(self, analyzer, make_agreement, now) -> None:
        ba = make_agreement("Billing BAA", type=BA, approval=SubcontractorApproval.NOT_APPLICABLE)
        sub = make_agreement("Cloud Sub BAA", type=SUB)

        issues = analyzer.analyze([ba, sub], now)

        assert len(issues) == 1
        assert issues[0].type == IssueSeverity.WARNING
        assert issues[0].category == SUBCONTRACTOR_MANAGEMENT
        assert issues[0].affected_agreements == ["Billing BAA"]
        assert '"not-applicable"' in issues[0].description

    def test_not_applicable_without_subcontractors(self, analyzer, make_agreement, now) -> None:
        ba = make_agreement("Billing BAA", type=BA, approval=SubcontractorApproval.NOT_APPLICABLE)
        assert analyzer.analyze([ba], now) == []

    def test_notification_is_acceptable(self, analyzer, make_agreement, now) -> None:
        ba = make_agreement("Billing BAA", type=BA, approval=SubcontractorApproval.NOTIFICATION)
        sub = make_agreement("Cloud Sub BAA", type=SUB)
        assert analyzer.analyze([ba, sub], now) == []

    def test_only_business_associates_checked(self, analyzer, make_agreement, now) -> None:
        ce = make_agreement("Hospital", type=CE, approval=SubcontractorApproval.NOT_APPLICABLE)
        sub = make_agreement("Cloud Sub BAA", type=SUB, approval=SubcontractorApproval.NOT_APPLICABLE)
        assert analyzer.analyze([ce, sub], now) == []

    def test_checked_across_whole_organization(self, analyzer, make_agreement, now) -> None:
        """Any subcontractor triggers the check, even one unrelated to the BA."""
        agreements = [
            make_agreement("BA One", type=BA, approval=SubcontractorApproval.NOT_APPLICABLE),
            make_agreement("BA Two", type=BA, approval=SubcontractorApproval.NOT_APPLICABLE),
            make_agreement("Unrelated Sub", type=SUB, counterparty="Elsewhere Inc."),
        ]
        issues = analyzer.analyze(agreements, now)
        assert [i.affected_agreements for i in issues] == [["BA One"], ["BA Two"]]


# ---------------------------------------------------------------------------
# Ordering and purity
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_critical_before_warning_rule_order_kept(self, analyzer, make_agreement, now) -> None:
        agreements = [
            make_agreement(
                "Alpha BAA",
                type=BA,
                audit_rights=False,
                approval=SubcontractorApproval.NOT_APPLICABLE,
                expiration=_in(now, 60),
            ),
            make_agreement("Beta Sub", type=SUB, breach=48),
            make_agreement("Gamma CE", type=CE, expiration=_in(now, 10)),
        ]

        issues = analyzer.analyze(agreements, now)

        assert [(i.type, i.category) for i in issues] == [
            (IssueSeverity.CRITICAL, BREACH_CASCADE),
            (IssueSeverity.CRITICAL, AGREEMENT_EXPIRATION),
            (IssueSeverity.WARNING, AGREEMENT_EXPIRATION),
            (IssueSeverity.WARNING, AUDIT_RIGHTS),
            (IssueSeverity.WARNING, SUBCONTRACTOR_MANAGEMENT),
        ]
        assert issues[1].affected_agreements == ["Gamma CE"]

    def test_empty_input(self, analyzer, now) -> None:
        assert analyzer.analyze([], now) == []

    def test_repeat_runs_identical(self, analyzer, sample_store, sample_now) -> None:
        agreements = sample_store.snapshot()
        assert analyzer.analyze(agreements, sample_now) == analyzer.analyze(agreements, sample_now)

    def test_input_not_modified(self, analyzer, sample_store, sample_now) -> None:
        agreements = sample_store.snapshot()
        before = copy.deepcopy(agreements)

        analyzer.analyze(agreements, sample_now)
        analyzer.report(agreements, sample_now)

        assert agreements == before

    def test_affected_names_come_from_input(self, analyzer, sample_store, sample_now) -> None:
        agreements = sample_store.snapshot()
        names = {a.name for a in agreements}
        for issue in analyzer.analyze(agreements, sample_now):
            assert issue.affected_agreements
            assert set(issue.affected_agreements) <= names

    def test_defaults_to_today(self, analyzer, make_agreement) -> None:
        agreement = make_agreement("Vendor BAA", expiration=_in(date.today(), 10))
        issues = analyzer.analyze([agreement])
        assert [i.type for i in issues] == [IssueSeverity.CRITICAL]

    def test_module_function(self, make_agreement, now) -> None:
        agreement = make_agreement("Vendor BAA", expiration=_in(now, 10))
        assert len(analyze_compliance([agreement], now)) == 1


# ---------------------------------------------------------------------------
# Sample portfolio
# ---------------------------------------------------------------------------


class TestSamplePortfolio:
    def test_issue_sequence(self, analyzer, sample_store: AgreementStore, sample_now) -> None:
        issues = analyzer.analyze(sample_store.snapshot(), sample_now)

        assert [(i.type.value, i.category, i.affected_agreements) for i in issues] == [
            ("critical", BREACH_CASCADE, ["CloudStore Subcontractor BAA", "Acme Healthcare BAA"]),
            ("critical", BREACH_CASCADE, ["Legacy Transcription BAA", "Acme Healthcare BAA"]),
            ("critical", BREACH_CASCADE, ["Legacy Transcription BAA", "MedBilling Partners BAA"]),
            ("critical", AGREEMENT_EXPIRATION, ["Regional Hospital Network Agreement"]),
            ("warning", AGREEMENT_EXPIRATION, ["Acme Healthcare BAA"]),
            ("warning", AGREEMENT_EXPIRATION, ["CloudStore Subcontractor BAA"]),
            ("warning", AUDIT_RIGHTS, ["MedBilling Partners BAA"]),
            ("warning", SUBCONTRACTOR_MANAGEMENT, ["MedBilling Partners BAA"]),
        ]

    def test_report(self, analyzer, sample_store: AgreementStore, sample_now) -> None:
        report = analyzer.report(sample_store.snapshot(), sample_now)

        assert isinstance(report, ComplianceReport)
        assert report.reference_date == sample_now
        assert report.critical_count == 4
        assert report.warning_count == 4
        assert report.total_agreements == 5
        assert report.active_agreements == 4
        assert report.overall_score == 82
        assert [s.agreement_name for s in report.scores] == [
            "Legacy Transcription BAA",
            "MedBilling Partners BAA",
            "Regional Hospital Network Agreement",
            "Acme Healthcare BAA",
            "CloudStore Subcontractor BAA",
        ]

    def test_report_to_dict(self, analyzer, sample_store: AgreementStore, sample_now) -> None:
        d = analyzer.report(sample_store.snapshot(), sample_now).to_dict()
        assert d["reference_date"] == "2025-12-01"
        assert d["overall_band"] == "good"
        assert len(d["issues"]) == 8
        assert d["issues"][0]["type"] == "critical"

    def test_report_overall_matches_scores(
        self, analyzer, sample_store: AgreementStore, sample_now
    ) -> None:
        report = analyzer.report(sample_store.snapshot(), sample_now)
        mean = sum(s.score for s in report.scores) / len(report.scores)
        assert report.overall_score == int(mean + 0.5)

    def test_report_scores_each_agreement_once(
        self, analyzer, make_agreement, now, log_messages
    ) -> None:
        broken = make_agreement("Broken BAA", expiration="not-a-date")

        analyzer.report([broken], now)

        assert sum("expiration deduction" in m for m in log_messages) == 1
        assert sum("expiration check" in m for m in log_messages) == 1

    def test_removed_agreement_drops_out(
        self, analyzer, sample_store: AgreementStore, sample_now
    ) -> None:
        sample_store.remove(5)
        issues = analyzer.analyze(sample_store.snapshot(), sample_now)
        assert all("Legacy Transcription BAA" not in i.affected_agreements for i in issues)
        assert sum(1 for i in issues if i.category == BREACH_CASCADE) == 1
