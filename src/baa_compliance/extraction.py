"""
LLM-based extraction of BAA compliance terms.
Uses Anthropic or OpenAI models to turn agreement text into structured terms.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from tenacity import retry, stop_after_attempt, wait_exponential

from .config import ExtractionSettings
from .exceptions import ExtractionError
from .models import AgreementType, ExtractedData, SubcontractorApproval
from .parsers import load_document
from .prompts import EXTRACTION_PROMPT, SYSTEM_PROMPT
from .store import NewAgreement

DEFAULT_BREACH_HOURS = 72
DEFAULT_RETENTION_YEARS = 6
DEFAULT_TERMINATION_DAYS = 30

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def _int_or(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class ExtractionResult:
    """Terms extracted from one agreement document.

    Defaults mirror what the extraction prompt asks the model to assume
    when the document is silent.
    """

    agreement_name: str
    agreement_type: AgreementType
    counterparty: str
    effective_date: Optional[str] = None
    expiration_date: Optional[str] = None
    breach_notification_hours: int = DEFAULT_BREACH_HOURS
    audit_rights: bool = False
    subcontractor_approval: SubcontractorApproval = SubcontractorApproval.NOT_APPLICABLE
    data_retention_years: int = DEFAULT_RETENTION_YEARS
    termination_notice_days: int = DEFAULT_TERMINATION_DAYS
    covered_entity: Optional[str] = None
    business_associate: Optional[str] = None
    key_provisions: list[str] = field(default_factory=list)
    confidence: float = 0.0
    method: str = "claude-ai"

    @classmethod
    def from_response(cls, data: dict, method: str = "claude-ai") -> ExtractionResult:
        """Build a result from the model's JSON object.

        Raises:
            ExtractionError: If the agreement type is missing or unknown.
        """
        terms = data.get("compliance_terms") or {}
        parties = data.get("parties") or {}

        raw_type = data.get("agreement_type")
        try:
            agreement_type = AgreementType(str(raw_type).strip().lower())
        except ValueError as exc:
            raise ExtractionError(f"Unknown agreement type in extraction: {raw_type!r}") from exc

        try:
            confidence = float(data.get("confidence_score") or 0)
        except (TypeError, ValueError):
            confidence = 0.0

        return cls(
            agreement_name=str(data.get("agreement_name") or "Untitled Agreement"),
            agreement_type=agreement_type,
            counterparty=str(data.get("counterparty") or ""),
            effective_date=data.get("effective_date"),
            expiration_date=data.get("expiration_date"),
            breach_notification_hours=_int_or(
                terms.get("breach_notification_hours"), DEFAULT_BREACH_HOURS
            ),
            audit_rights=bool(terms.get("audit_rights")),
            subcontractor_approval=(
                SubcontractorApproval.REQUIRED
                if terms.get("subcontractor_approval")
                else SubcontractorApproval.NOT_APPLICABLE
            ),
            data_retention_years=_int_or(terms.get("data_retention_years"), DEFAULT_RETENTION_YEARS),
            termination_notice_days=_int_or(
                terms.get("termination_notice_days"), DEFAULT_TERMINATION_DAYS
            ),
            covered_entity=parties.get("covered_entity"),
            business_associate=parties.get("business_associate"),
            key_provisions=[str(p) for p in data.get("key_provisions") or []],
            confidence=min(100.0, max(0.0, confidence)),
            method=method,
        )

    @property
    def extracted_data(self) -> ExtractedData:
        return ExtractedData(confidence=self.confidence, method=self.method)

    def to_new_agreement(self) -> NewAgreement:
        """Form data ready for :meth:`AgreementStore.add`.

        Missing dates are left empty; the store rejects them until a person
        fills them in.
        """
        return NewAgreement(
            name=self.agreement_name,
            type=self.agreement_type,
            counterparty=self.counterparty,
            effective_date=self.effective_date or "",
            expiration_date=self.expiration_date or "",
            breach_notification=self.breach_notification_hours,
            audit_rights=self.audit_rights,
            subcontractor_approval=self.subcontractor_approval,
            data_retention=f"{self.data_retention_years} years",
            termination_notice=self.termination_notice_days,
            extracted_data=self.extracted_data,
        )

    def to_dict(self) -> dict:
        return {
            "agreement_name": self.agreement_name,
            "agreement_type": self.agreement_type.value,
            "counterparty": self.counterparty,
            "effective_date": self.effective_date,
            "expiration_date": self.expiration_date,
            "compliance_terms": {
                "breach_notification_hours": self.breach_notification_hours,
                "audit_rights": self.audit_rights,
                "subcontractor_approval": self.subcontractor_approval.value,
                "data_retention_years": self.data_retention_years,
                "termination_notice_days": self.termination_notice_days,
            },
            "parties": {
                "covered_entity": self.covered_entity,
                "business_associate": self.business_associate,
            },
            "key_provisions": self.key_provisions,
            "confidence": round(self.confidence, 1),
            "method": self.method,
        }


class TermExtractor:
    """
    Extracts BAA compliance terms using LLM models.
    Supports both Anthropic and OpenAI models.
    """

    def __init__(
        self,
        model: str | None = None,
        client: Any = None,
        api_key: str | None = None,
        settings: ExtractionSettings | None = None,
    ):
        """
        Initialize the extractor.

        Args:
            model: Model name (claude-sonnet-4-5-20250929, gpt-4o, etc.); defaults
                to the model in ``settings``
            client: Pre-built Anthropic or OpenAI client (created from the
                environment if omitted)
            api_key: API key used when creating the client
            settings: Token and input-length limits
        """
        self.settings = settings or ExtractionSettings()
        self.model = model or self.settings.model
        self.is_anthropic = self.model.startswith("claude")
        self.client = client if client is not None else self._init_client(api_key)

    @property
    def method(self) -> str:
        return "claude-ai" if self.is_anthropic else "openai"

    def _init_client(self, api_key: str | None) -> Any:
        """Create the appropriate API client."""
        if self.is_anthropic:
            api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY not found in environment")

            from anthropic import Anthropic

            return Anthropic(api_key=api_key)

        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY not found in environment")

        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=4, max=10))
    def _call_llm(self, prompt: str) -> str:
        """
        Make a call to the LLM with retry logic.

        Returns:
            The model's response text
        """
        if self.is_anthropic:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.settings.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
            return response.content[0].text

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )
        return response.choices[0].message.content

    @staticmethod
    def _parse_json_response(response: str) -> dict:
        """
        Parse JSON from the LLM response, handling markdown code blocks.

        Raises:
            ExtractionError: If no JSON object can be recovered.
        """
        text = (response or "").strip()
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            match = _FENCED_JSON.search(text)
            if not match:
                raise ExtractionError("Failed to parse extraction response as JSON") from None
            try:
                data = json.loads(match.group(1).strip())
            except json.JSONDecodeError as exc:
                raise ExtractionError(f"Failed to parse extraction response as JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise ExtractionError("Extraction response is not a JSON object")
        return data

    def extract(self, document_text: str) -> ExtractionResult:
        """
        Extract compliance terms from agreement text.

        Args:
            document_text: The full text of the agreement

        Returns:
            The extracted terms

        Raises:
            ValueError: If the text is empty
            ExtractionError: If the model's answer cannot be used
        """
        if not document_text or not document_text.strip():
            raise ValueError("document_text is required")

        max_chars = self.settings.max_chars
        if len(document_text) > max_chars:
            logger.warning(
                "Document is {} characters; only the first {} are sent for extraction",
                len(document_text),
                max_chars,
            )

        prompt = EXTRACTION_PROMPT.format(document_text=document_text[:max_chars])
        logger.debug("Requesting term extraction from {}", self.model)
        response = self._call_llm(prompt)

        result = ExtractionResult.from_response(self._parse_json_response(response), method=self.method)
        logger.info(
            "Extracted terms for {!r} (confidence {:.0f})", result.agreement_name, result.confidence
        )
        return result

    def extract_file(self, path: str | Path) -> ExtractionResult:
        """
        Load a PDF, DOCX, HTML or text document and extract its terms.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the format is unsupported or no text could be read
        """
        document = load_document(path)
        if document.is_empty:
            raise ValueError(f"No text could be read from {document.filename}")
        return self.extract(document.text)
