"""Customer library layout and filename safety checks."""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from docintel.core.exceptions import ValidationError

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Executable or script formats never accepted as the real extension
_BLOCKED_EXTENSIONS = {
    ".exe", ".bat", ".cmd", ".com", ".scr", ".msi", ".ps1", ".vbs", ".js", ".jar", ".sh", ".dll",
}


def safe_slug(value: Optional[str]) -> str:
    """Slug a display name for use as a folder name, keeping case.

    Args:
        value: Arbitrary display text

    Returns:
        str: Slug of at most 60 characters, "untitled" when nothing survives
    """
    text = re.sub(r"['\"]", "", value or "")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text).strip("-")
    return text[:60] or "untitled"


def customer_folder_name(customer_id: int, name: Optional[str] = None, created_at: Optional[datetime] = None) -> str:
    """Folder name for a customer: ``{Name}_{Mon}_{YYYY}``.

    Example: "Acme Corp" created Aug 2025 -> "Acme-Corp_Aug_2025".
    """
    stamp = created_at or datetime.now()
    slug = safe_slug(name or f"customer-{customer_id}")
    return f"{slug}_{_MONTHS[stamp.month - 1]}_{stamp.year}"


def customer_documents_dir(
    library_root: str,
    customer_id: int,
    name: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Path:
    """Absolute path of a customer's documents folder (not created)."""
    folder = customer_folder_name(customer_id, name, created_at)
    return Path(library_root).resolve() / "customers" / folder / "documents"


def has_double_extension(filename: str) -> bool:
    """Detect names like ``invoice.pdf.exe`` whose real extension is blocked."""
    parts = Path(filename).name.split(".")
    if len(parts) < 3:
        return False
    return f".{parts[-1].lower()}" in _BLOCKED_EXTENSIONS


def resolve_inside(base_dir: Path, filename: str) -> Path:
    """Resolve filename under base_dir, rejecting traversal and unsafe names.

    Args:
        base_dir: Directory the file must live in
        filename: Caller-supplied file name

    Returns:
        Path: Resolved absolute path inside base_dir

    Raises:
        ValidationError: If the name is empty, escapes base_dir or is unsafe
    """
    if not filename or not filename.strip():
        raise ValidationError("Missing file name")

    base = Path(base_dir).resolve()
    target = (base / filename).resolve()
    if target == base or base not in target.parents:
        raise ValidationError(f"Invalid path: {filename}")
    if has_double_extension(filename):
        raise ValidationError(f"Blocked file name: {filename}")
    return target
