"""Text extraction from uploaded documents.

Plain text, PDF, Word and EPUB documents are parsed locally. HWP,
PowerPoint and Excel files are accepted at intake (operators drop them in
with everything else) but cannot be read; extraction rejects them with a
hint to paste the text or convert the file to PDF.
"""

# Standard library imports
import logging
import os
import warnings
from pathlib import Path
from typing import Union

# Third-party imports
import fitz
import pymupdf4llm
from bs4 import BeautifulSoup
from docx import Document
from ebooklib import epub, ITEM_DOCUMENT

from safetyspeak.errors import ExtractionError

warnings.filterwarnings("ignore", category=UserWarning, module='ebooklib')
warnings.filterwarnings("ignore", category=FutureWarning, module='ebooklib')

logger = logging.getLogger(__name__)

# Extensions accepted at intake
VALID_EXTENSIONS = ('.docx', '.xlsx', '.pptx', '.hwp', '.txt', '.pdf', '.epub')

# Accepted at intake, rejected at extraction
UNREADABLE_EXTENSIONS = ('.hwp', '.pptx', '.xlsx')

TEXT_ENCODINGS = ('utf-8', 'utf-8-sig', 'cp949', 'latin-1')


def is_valid_file_type(path: Union[str, Path]) -> bool:
    """Check whether the file type is accepted at intake."""
    return Path(path).suffix.lower() in VALID_EXTENSIONS


def is_valid_file_size(path: Union[str, Path], max_bytes: int) -> bool:
    """Check whether the file is within the intake size limit."""
    return os.path.getsize(path) <= max_bytes


def extract_text_from_epub(epub_file):
    book = epub.read_epub(epub_file)
    parts = []
    for item in book.get_items():
        if item.get_type() == ITEM_DOCUMENT:
            soup = BeautifulSoup(item.get_body_content(), "html.parser")
            text = soup.get_text().strip()
            if text:
                parts.append(text)
    return "\n\n".join(parts)


class DocumentExtractor:
    """Extracts plain text from supported document formats."""

    def extract(self, path: Union[str, Path]) -> str:
        """Extract text from a document.

        Args:
            path: Path to the document

        Returns:
            Extracted text, stripped of surrounding whitespace

        Raises:
            ExtractionError: If the file is missing, unsupported or unreadable
        """
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix in UNREADABLE_EXTENSIONS:
            raise ExtractionError(
                f"{suffix.lstrip('.').upper()} files cannot be processed directly.",
                hint="Copy the content into the text input or convert the file to PDF."
            )
        if suffix not in VALID_EXTENSIONS:
            raise ExtractionError(f"Unsupported file type: {suffix or path.name}")
        if not path.exists():
            raise ExtractionError(f"File not found: {path}")

        logger.debug("Extracting text from %s", path)
        try:
            if suffix == '.txt':
                text = self._extract_txt(path)
            elif suffix == '.pdf':
                text = self._extract_pdf(path)
            elif suffix == '.docx':
                text = self._extract_docx(path)
            else:
                text = extract_text_from_epub(str(path))
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(
                f"Could not read {path.name}: {e}",
                hint="Convert the file to PDF and try again."
            ) from e

        return text.strip()

    def _extract_txt(self, path: Path) -> str:
        raw = path.read_bytes()
        for encoding in TEXT_ENCODINGS:
            try:
                return raw.decode(encoding)
            except UnicodeDecodeError:
                continue
        raise ExtractionError(f"Could not decode text file: {path.name}")

    def _extract_pdf(self, path: Path) -> str:
        """Read the PDF text layer, falling back to markdown conversion."""
        doc = fitz.open(str(path))
        try:
            pages = [page.get_text() for page in doc]
        finally:
            doc.close()

        text = "\n".join(p.strip() for p in pages if p.strip())
        if text:
            return text

        logger.debug("No text layer in %s, trying markdown conversion", path.name)
        return pymupdf4llm.to_markdown(str(path))

    def _extract_docx(self, path: Path) -> str:
        document = Document(str(path))
        parts = [p.text for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(' '.join(cells))
        return "\n".join(parts)
