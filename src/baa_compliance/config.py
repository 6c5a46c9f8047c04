"""Tunable thresholds and settings.

Defaults reproduce the standard HIPAA review policy. Every value can be
overridden by passing a custom instance to the component that uses it;
``load_settings()`` additionally reads a ``.env`` file and a handful of
environment variables for the command-line entry point.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_EXTRACTION_MODEL = "claude-sonnet-4-5-20250929"


@dataclass(frozen=True)
class RuleThresholds:
    """Thresholds used by the compliance rules."""

    # Agreements expiring within this many days are flagged
    expiration_window_days: int = 90
    # ...and escalated to critical at or below this many days
    critical_expiration_days: int = 30
    # Lead time quoted in renewal recommendations
    renewal_lead_days: int = 60


@dataclass(frozen=True)
class ScoringDeductions:
    """Points removed from a perfect score of 100, one entry per condition."""

    not_fully_executed: int = 25
    expired: int = 30
    expiring_soon: int = 15
    missing_audit_rights: int = 10
    lax_breach_notification: int = 10
    expiring_soon_days: int = 30
    # More than 72 hours is concerning for HIPAA
    max_breach_notification_hours: int = 72


@dataclass
class ExtractionSettings:
    """LLM extraction settings."""

    model: str = DEFAULT_EXTRACTION_MODEL
    max_tokens: int = 4096
    max_chars: int = 50_000
    temperature: float = 0.0


@dataclass
class Settings:
    """Top-level settings bundle."""

    thresholds: RuleThresholds = field(default_factory=RuleThresholds)
    deductions: ScoringDeductions = field(default_factory=ScoringDeductions)
    extraction: ExtractionSettings = field(default_factory=ExtractionSettings)
    log_level: str = "WARNING"


def load_settings(env_file: str | None = None) -> Settings:
    """Build settings from defaults, a ``.env`` file and the environment.

    Recognised variables: ``BAA_LOG_LEVEL``, ``BAA_EXTRACTION_MODEL``,
    ``BAA_EXTRACTION_MAX_CHARS``.

    Raises:
        ValueError: If ``BAA_EXTRACTION_MAX_CHARS`` is not an integer.
    """
    load_dotenv(env_file)
    settings = Settings()

    if level := os.getenv("BAA_LOG_LEVEL"):
        settings.log_level = level.upper()

    if model := os.getenv("BAA_EXTRACTION_MODEL"):
        settings.extraction.model = model

    if max_chars := os.getenv("BAA_EXTRACTION_MAX_CHARS"):
        try:
            settings.extraction.max_chars = int(max_chars)
        except ValueError as exc:
            raise ValueError(f"BAA_EXTRACTION_MAX_CHARS must be an integer, got {max_chars!r}") from exc

    return settings
