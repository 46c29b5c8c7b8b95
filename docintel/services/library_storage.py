"""Local library storage for customer documents and generation templates."""

import asyncio
from pathlib import Path
from typing import Tuple

from fastapi import UploadFile

from docintel.core.exceptions import AppError, ValidationError
from docintel.database.models import Customer
from docintel.utils.logging import get_logger
from docintel.utils.naming import customer_documents_dir, resolve_inside, safe_slug

LOGGER = get_logger(__name__)


def _write_bytes(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)


class LibraryStorage:
    """Service for persisting uploads under the library root."""

    def __init__(self, library_root: str):
        self.library_root = library_root

    def documents_dir(self, customer: Customer) -> Path:
        return customer_documents_dir(self.library_root, customer.id, customer.name, customer.created_at)

    def template_dir(self, template_slug: str) -> Path:
        return Path(self.library_root).resolve() / "templates" / safe_slug(template_slug)

    async def store(self, directory: Path, file: UploadFile) -> Tuple[Path, int]:
        """Write an uploaded file into directory under its own base name.

        Args:
            directory: Destination folder, created when missing
            file: The multipart upload

        Returns:
            Tuple of the stored path and its size in bytes

        Raises:
            ValidationError: If the file name is missing or unsafe
            AppError: If the file could not be written
        """
        filename = Path(file.filename or "").name
        target = resolve_inside(directory, filename)

        try:
            content = await file.read()
            await asyncio.to_thread(_write_bytes, target, content)
        except OSError as e:
            LOGGER.error(
                f"Error storing upload: {e}",
                exc_info=True,
                extra={"file_name": filename, "directory": str(directory)},
            )
            raise AppError(f"Storage error: {e}", original_error=e) from e
        finally:
            await file.seek(0)

        LOGGER.info("Stored upload", extra={"file_name": filename, "size": len(content)})
        return target, len(content)

    @staticmethod
    def locate(directory: Path, filename: str) -> Path:
        """Resolve a stored file name, rejecting traversal.

        Raises:
            ValidationError: If the name is unsafe
        """
        if not filename:
            raise ValidationError("Missing file name")
        return resolve_inside(directory, filename)
