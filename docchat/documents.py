"""Shared-folder storage for uploaded documents."""
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import structlog

from docchat import config

logger = structlog.get_logger()


@dataclass(frozen=True)
class DocumentInfo:
    name: str
    type: str
    size: int
    upload_date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "uploadDate": self.upload_date.isoformat(),
        }


class DocumentStore:
    """Stores raw uploads in a flat directory and lists them."""

    def __init__(self, shared_dir: Path = None):
        self.shared_dir = Path(shared_dir or config.SHARED_FOLDER)
        self.shared_dir.mkdir(parents=True, exist_ok=True)

    def save(self, filename: str, data: bytes) -> Path:
        """Write an upload under its base name, replacing any previous copy.

        Raises:
            ValueError: If the filename has no usable base name
        """
        name = Path(filename or "").name
        if not name or name in (".", ".."):
            raise ValueError(f"Invalid filename: {filename!r}")

        dest = self.shared_dir / name
        dest.write_bytes(data)

        logger.info("document_saved", path=str(dest), size=len(data))
        return dest

    def list_documents(self) -> List[DocumentInfo]:
        documents = []
        for path in sorted(self.shared_dir.iterdir()):
            if not path.is_file():
                continue
            stats = path.stat()
            documents.append(
                DocumentInfo(
                    name=path.name,
                    type=path.suffix.lstrip("."),
                    size=stats.st_size,
                    upload_date=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                )
            )
        return documents
