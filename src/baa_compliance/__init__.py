"""BAA Compliance -- HIPAA Business Associate Agreement compliance analysis."""

__version__ = "0.1.0"

from .analyzer import ComplianceAnalyzer, analyze_compliance
from .config import RuleThresholds, ScoringDeductions, Settings, load_settings
from .exceptions import (
    AgreementNotFoundError,
    BAAComplianceError,
    ExtractionError,
    InvalidAgreementError,
    InvalidTemplateError,
    TemplateNotFoundError,
)
from .extraction import ExtractionResult, TermExtractor
from .models import (
    Agreement,
    AgreementScore,
    AgreementStatus,
    AgreementType,
    AgreementVersion,
    ComplianceIssue,
    ComplianceReport,
    ComplianceTerms,
    ExtractedData,
    IssueSeverity,
    ScoreBand,
    SignatureStatus,
    SubcontractorApproval,
)
from .scoring import ComplianceScorer, score_agreement, score_organization
from .store import AgreementFilters, AgreementStore, NewAgreement, parse_retention_years
from .templates import DEFAULT_TEMPLATES, ComplianceTemplate, TemplateLibrary

__all__ = [
    # Core
    "ComplianceAnalyzer",
    "analyze_compliance",
    "ComplianceScorer",
    "score_agreement",
    "score_organization",
    # Models
    "Agreement",
    "AgreementScore",
    "AgreementStatus",
    "AgreementType",
    "AgreementVersion",
    "ComplianceIssue",
    "ComplianceReport",
    "ComplianceTerms",
    "ExtractedData",
    "IssueSeverity",
    "ScoreBand",
    "SignatureStatus",
    "SubcontractorApproval",
    # Configuration
    "RuleThresholds",
    "ScoringDeductions",
    "Settings",
    "load_settings",
    # Agreement store
    "AgreementStore",
    "AgreementFilters",
    "NewAgreement",
    "parse_retention_years",
    # Templates
    "ComplianceTemplate",
    "TemplateLibrary",
    "DEFAULT_TEMPLATES",
    # Extraction
    "TermExtractor",
    "ExtractionResult",
    # Errors
    "BAAComplianceError",
    "InvalidAgreementError",
    "AgreementNotFoundError",
    "ExtractionError",
    "InvalidTemplateError",
    "TemplateNotFoundError",
]
