"""Load agreement text from uploaded documents.

Supports plain text, Markdown, HTML, PDF and DOCX. The extractor only needs
the document's text, so each parser returns an :class:`AgreementDocument`
holding the text of every page and a little format metadata.
"""

from __future__ import annotations

import html
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from html.parser import HTMLParser as _StdHTMLParser
from pathlib import Path

import pdfplumber
from docx import Document


@dataclass
class AgreementDocument:
    """Text content of an uploaded agreement."""

    filename: str
    pages: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        return "\n\n".join(p for p in self.pages if p)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


class DocumentParser(ABC):
    """Base class for format-specific parsers."""

    supported_extensions: tuple[str, ...] = ()

    def can_handle(self, path: Path) -> bool:
        return path.suffix.lower() in self.supported_extensions

    def parse(self, path: Path) -> AgreementDocument:
        """Read ``path`` and return its text.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the extension is not handled by this parser.
        """
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if not self.can_handle(path):
            raise ValueError(
                f"Unsupported file extension '{path.suffix}' for {self.__class__.__name__}. "
                f"Supported: {self.supported_extensions}"
            )
        return self._read(path)

    @abstractmethod
    def _read(self, path: Path) -> AgreementDocument:
        ...


class TextParser(DocumentParser):
    """Plain text and Markdown. Form feeds split pages."""

    supported_extensions = (".txt", ".text", ".md")

    def _read(self, path: Path) -> AgreementDocument:
        raw = path.read_text(encoding="utf-8", errors="replace")
        pages = [chunk.strip() for chunk in raw.split("\f") if chunk.strip()]
        return AgreementDocument(filename=path.name, pages=pages, metadata={"format": "text"})


class PDFParser(DocumentParser):
    """PDF via pdfplumber; scanned pages without a text layer come back empty."""

    supported_extensions = (".pdf",)

    def _read(self, path: Path) -> AgreementDocument:
        with pdfplumber.open(str(path)) as pdf:
            pages = [(page.extract_text() or "").strip() for page in pdf.pages]
            metadata = {"format": "pdf", "pdf_metadata": pdf.metadata or {}}
        return AgreementDocument(filename=path.name, pages=pages, metadata=metadata)


class DOCXParser(DocumentParser):
    """Word documents via python-docx, including text inside tables.

    DOCX has no page boundaries, so the whole document is one page.
    """

    supported_extensions = (".docx",)

    def _read(self, path: Path) -> AgreementDocument:
        doc = Document(str(path))
        parts = [p.text for p in doc.paragraphs if p.text.strip()]

        # Signature blocks and term schedules are often laid out as tables
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        metadata: dict = {"format": "docx", "paragraph_count": len(doc.paragraphs)}
        if doc.core_properties.title:
            metadata["title"] = doc.core_properties.title

        return AgreementDocument(filename=path.name, pages=["\n\n".join(parts)], metadata=metadata)


class _TextExtractor(_StdHTMLParser):
    _SKIP = ("script", "style", "head", "title")
    _BREAKS = ("p", "div", "br", "h1", "h2", "h3", "h4", "h5", "h6", "li", "tr")

    def __init__(self) -> None:
        super().__init__()
        self.parts: list[str] = []
        # Nesting depth of skipped elements; <style> sits inside <head>
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list) -> None:
        if tag in self._SKIP:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in self._SKIP and self._skip_depth:
            self._skip_depth -= 1
        if tag in self._BREAKS:
            self.parts.append("\n")

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self.parts.append(data)


class HTMLParser(DocumentParser):
    """HTML with tags, scripts and styles stripped."""

    supported_extensions = (".html", ".htm")

    def _read(self, path: Path) -> AgreementDocument:
        extractor = _TextExtractor()
        extractor.feed(path.read_text(encoding="utf-8", errors="replace"))
        text = html.unescape("".join(extractor.parts))
        text = re.sub(r"\n{3,}", "\n\n", text).strip()
        return AgreementDocument(filename=path.name, pages=[text], metadata={"format": "html"})


_PARSERS: tuple[DocumentParser, ...] = (PDFParser(), DOCXParser(), TextParser(), HTMLParser())


def get_parser(path: str | Path) -> DocumentParser:
    """Pick the parser for a file by extension.

    Raises:
        ValueError: If no parser supports the extension.
    """
    p = Path(path)
    for parser in _PARSERS:
        if parser.can_handle(p):
            return parser

    supported = sorted({ext for parser in _PARSERS for ext in parser.supported_extensions})
    raise ValueError(f"No parser available for '{p.suffix}'. Supported formats: {', '.join(supported)}")


def load_document(path: str | Path) -> AgreementDocument:
    """Parse ``path`` with the matching parser."""
    p = Path(path)
    return get_parser(p).parse(p)
