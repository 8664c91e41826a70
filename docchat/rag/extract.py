"""Plain-text extraction for uploaded documents.

Supported formats: .txt, .csv, .json, .pdf
"""
import csv
import io
import json
from pathlib import Path
from typing import Callable, Dict

import structlog
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from docchat.errors import DocumentParseError, UnsupportedFileTypeError

logger = structlog.get_logger()


def _extract_txt(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _extract_csv(path: Path) -> str:
    content = path.read_text(encoding="utf-8")
    rows = csv.reader(io.StringIO(content))
    return "\n".join(", ".join(row) for row in rows if any(cell.strip() for cell in row))


def _extract_json(path: Path) -> str:
    with open(path, "r", encoding="utf-8") as f:
        obj = json.load(f)
    return json.dumps(obj, indent=2, ensure_ascii=False)


def _extract_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


_EXTRACTORS: Dict[str, Callable[[Path], str]] = {
    ".txt": _extract_txt,
    ".csv": _extract_csv,
    ".json": _extract_json,
    ".pdf": _extract_pdf,
}


def supported_extensions() -> list:
    return sorted(_EXTRACTORS)


def is_supported(path: Path) -> bool:
    return Path(path).suffix.lower() in _EXTRACTORS


def extract_text(path: Path) -> str:
    """Extract plain text from a document.

    Args:
        path: Path to the document

    Returns:
        Extracted text

    Raises:
        UnsupportedFileTypeError: If the extension has no extractor
        DocumentParseError: If the file cannot be decoded or parsed
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    ext = path.suffix.lower()

    extractor = _EXTRACTORS.get(ext)
    if extractor is None:
        raise UnsupportedFileTypeError(f"Unsupported file type: {ext or path.name}")

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        text = extractor(path)
    except (ValueError, csv.Error, PyPdfError) as e:
        # ValueError covers UnicodeDecodeError and json.JSONDecodeError
        logger.error(
            "text_extraction_failed",
            path=str(path),
            file_type=ext,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DocumentParseError(f"Could not parse {path.name}: {e}") from e

    logger.info("text_extracted", path=str(path), file_type=ext, chars=len(text))
    return text
