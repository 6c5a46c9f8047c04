"""Command-line interface for BAA compliance analysis.

Provides ``analyze``, ``score``, ``extract`` and ``templates`` commands with
rich terminal output using the ``click`` and ``rich`` libraries.

Usage::

    baa-compliance analyze agreements.json
    baa-compliance score --now 2025-06-01 agreements.json
    baa-compliance extract signed_baa.pdf
    baa-compliance templates -o json
"""

from __future__ import annotations

import json
import sys
from datetime import date, datetime
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .analyzer import ComplianceAnalyzer
from .config import load_settings
from .dates import format_date, format_relative, is_expired
from .extraction import TermExtractor
from .logging_config import setup_logging
from .models import Agreement, AgreementScore, ComplianceReport, DateLike, IssueSeverity, ScoreBand
from .scoring import ComplianceScorer
from .store import AgreementStore
from .templates import TemplateLibrary

console = Console()


def _get_severity_style(severity: IssueSeverity) -> str:
    """Return a rich style string for an issue severity."""
    return {
        IssueSeverity.CRITICAL: "bold red",
        IssueSeverity.WARNING: "bold yellow",
    }.get(severity, "")


def _get_band_style(band: ScoreBand) -> str:
    return {
        ScoreBand.GOOD: "bold green",
        ScoreBand.FAIR: "bold yellow",
        ScoreBand.POOR: "bold red",
    }.get(band, "")


def _load_agreements(file: Path) -> AgreementStore:
    try:
        return AgreementStore.load_json(file)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)


def _reference_date(now: datetime | None) -> date:
    return now.date() if now is not None else date.today()


@click.group()
@click.version_option(package_name="baa-compliance")
@click.option("--log-level", default=None,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level (default: BAA_LOG_LEVEL or WARNING).")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """HIPAA BAA compliance checker.

    Analyze Business Associate Agreements for breach notification
    conflicts, expiration risk, and missing audit or subcontractor terms.
    """
    settings = load_settings()
    setup_logging(log_level or settings.log_level)
    ctx.obj = settings


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--now", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Reference date (YYYY-MM-DD); defaults to today.")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.option("--save", "-s", type=click.Path(path_type=Path), default=None,
              help="Save the report to a JSON file.")
@click.pass_obj
def analyze(settings, file: Path, now: datetime | None, output: str, save: Path | None) -> None:
    """Run all compliance checks on an agreements file.

    Example: baa-compliance analyze agreements.json
    """
    store = _load_agreements(file)
    analyzer = ComplianceAnalyzer(
        thresholds=settings.thresholds,
        scorer=ComplianceScorer(settings.deductions),
    )
    agreements = store.snapshot()
    report = analyzer.report(agreements, now=_reference_date(now))

    if output == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _render_report(report, agreements)

    if save:
        save.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        console.print(f"\n[dim]Report saved to {save}[/]")


@main.command()
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.option("--now", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Reference date (YYYY-MM-DD); defaults to today.")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_obj
def score(settings, file: Path, now: datetime | None, output: str) -> None:
    """Score each agreement and the organization overall.

    Example: baa-compliance score agreements.json
    """
    store = _load_agreements(file)
    agreements = store.snapshot()
    today = _reference_date(now)
    scorer = ComplianceScorer(settings.deductions)

    scores = scorer.rank(agreements, today)
    overall = scorer.average(scores)

    if output == "json":
        click.echo(json.dumps({
            "reference_date": today.isoformat(),
            "overall_score": overall,
            "scores": [s.to_dict() for s in scores],
        }, indent=2))
    else:
        _render_scores(scores, agreements, today)
        _render_overall(overall)


@main.command()
@click.argument("document", type=click.Path(exists=True, path_type=Path))
@click.option("--model", "-m", default=None, help="Extraction model (default from settings).")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_obj
def extract(settings, document: Path, model: str | None, output: str) -> None:
    """Extract compliance terms from an agreement document (PDF, DOCX, HTML, TXT).

    Example: baa-compliance extract signed_baa.pdf
    """
    with console.status("[bold blue]Extracting terms...", spinner="dots"):
        try:
            extractor = TermExtractor(model=model, settings=settings.extraction)
            result = extractor.extract_file(document)
        except Exception as e:
            console.print(f"[bold red]Error:[/] {e}")
            sys.exit(1)

    if output == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title=f"Extracted Terms: {document.name}", show_header=False)
    table.add_column("Field", style="cyan", width=28)
    table.add_column("Value", style="white")
    table.add_row("Agreement", result.agreement_name)
    table.add_row("Type", result.agreement_type.label)
    table.add_row("Counterparty", result.counterparty or "-")
    table.add_row("Effective", format_date(result.effective_date) if result.effective_date else "-")
    table.add_row("Expires", format_date(result.expiration_date) if result.expiration_date else "-")
    table.add_row("Breach notification", f"{result.breach_notification_hours} hours")
    table.add_row("Audit rights", "Yes" if result.audit_rights else "No")
    table.add_row("Subcontractor approval", result.subcontractor_approval.value)
    table.add_row("Data retention", f"{result.data_retention_years} years")
    table.add_row("Termination notice", f"{result.termination_notice_days} days")
    table.add_row("Confidence", f"{result.confidence:.0f}%")
    console.print(table)

    for provision in result.key_provisions:
        console.print(f"  • {provision}")
    console.print()


@main.command()
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
def templates(output: str) -> None:
    """List the built-in compliance-term templates.

    Example: baa-compliance templates
    """
    library = TemplateLibrary()

    if output == "json":
        click.echo(json.dumps([t.to_dict() for t in library.list_templates()], indent=2))
        return

    table = Table(title="Compliance Templates")
    table.add_column("Template", style="cyan")
    table.add_column("Breach", justify="right")
    table.add_column("Audit")
    table.add_column("Subcontractors")
    table.add_column("Retention", justify="right")
    table.add_column("Termination", justify="right")

    for t in library.list_templates():
        table.add_row(
            t.name,
            f"{t.breach_notification_hours}h",
            "Yes" if t.audit_rights else "No",
            t.subcontractor_approval.value,
            f"{t.data_retention_years} years",
            f"{t.termination_notice_days} days",
        )

    console.print(table)
    console.print()


# ------------------------------------------------------------------
# Rich rendering helpers
# ------------------------------------------------------------------

def _render_report(report: ComplianceReport, agreements: list[Agreement]) -> None:
    """Render a full ComplianceReport with rich formatting."""
    console.print()
    console.print(Panel(
        f"As of {format_date(report.reference_date)}\n"
        f"Agreements: {report.total_agreements} | "
        f"Active: {report.active_agreements} | "
        f"Critical: {report.critical_count} | "
        f"Warnings: {report.warning_count}",
        title="HIPAA BAA Compliance",
        border_style="blue",
    ))

    if report.has_issues:
        console.print("[bold]Compliance Issues[/]")
        for issue in report.issues:
            style = _get_severity_style(issue.type)
            console.print(f"  [{style}]{issue.type.value.upper()}[/] {issue.category}: {issue.description}")
            console.print(f"      -> {issue.recommendation}")
        console.print()
    else:
        console.print("[green]No compliance issues found.[/]\n")

    if report.scores:
        _render_scores(report.scores, agreements, report.reference_date)
    _render_overall(report.overall_score)


def _expires_cell(expiration: DateLike, today: date) -> Text:
    label = format_relative(expiration, today)
    try:
        expired = is_expired(expiration, today)
    except ValueError:
        return Text(label, style="dim")
    return Text(label, style="red" if expired else "")


def _render_scores(scores: list[AgreementScore], agreements: list[Agreement], today: date) -> None:
    """Render per-agreement scores as a rich table, worst first."""
    expirations = {a.id: a.expiration_date for a in agreements}

    table = Table(title="Agreement Scores", show_lines=False)
    table.add_column("Agreement", style="white")
    table.add_column("Score", justify="right", width=7)
    table.add_column("Expires")
    table.add_column("Deductions", style="dim")

    for s in scores:
        table.add_row(
            s.agreement_name,
            Text(str(s.score), style=_get_band_style(s.band)),
            _expires_cell(expirations[s.agreement_id], today),
            "; ".join(s.deductions) or "-",
        )

    console.print(table)
    console.print()


def _render_overall(overall: int) -> None:
    style = _get_band_style(ScoreBand.for_score(overall))
    console.print(f"Overall Compliance Score: [{style}]{overall}[/]")
    console.print()


if __name__ == "__main__":
    main()
