"""Lookups over the workspace service's document listing."""

from pathlib import PurePosixPath
from typing import Iterable, List, Optional

from docintel.core.exceptions import APIClientError
from docintel.core.workspace_client import WorkspaceClient
from docintel.schemas.ingestion import ExternalDocument


def _stem(filename: str) -> str:
    return PurePosixPath(filename).stem


def _title_or_url_matches(doc: ExternalDocument, filename: str) -> bool:
    title = (doc.title or "").strip()
    url = (doc.url or "").strip().lower()
    return title == filename or (bool(url) and url.endswith(filename.lower()))


def _segment_matches(segment: str, full: str, stem: str) -> bool:
    if segment.startswith(full):
        return True
    return bool(stem) and (segment == stem or segment.startswith(f"{stem}."))


def matches_upload(doc: ExternalDocument, filename: str, folders: Iterable[str]) -> bool:
    """Whether a listing entry belongs to an uploaded file.

    The service renames uploads (adds hashes, splits spreadsheets into one
    document per sheet under a folder named after the file), so an entry
    matches when it sits in one of ``folders`` and a path segment below that
    folder starts with the filename, or is the stem itself (optionally with
    an extension). Entries of other folders, or names that merely contain the
    stem, belong to other uploads.
    """
    full = filename.lower()
    stem = _stem(filename).lower()
    for folder in folders:
        prefix = f"{folder.strip('/')}/"
        if not doc.qualified_name.startswith(prefix):
            continue
        segments = doc.qualified_name[len(prefix):].lower().split("/")
        if any(_segment_matches(segment, full, stem) for segment in segments):
            return True
    return False


def entry_is(doc: ExternalDocument, identifier: str) -> bool:
    """Whether a listing entry is exactly the given identifier."""
    base = identifier.rsplit("/", 1)[-1]
    return identifier in (doc.qualified_name, doc.location) or doc.name == base


async def find_docs_by_filename(
    client: WorkspaceClient,
    filename: str,
    workspace_slug: Optional[str] = None,
) -> List[str]:
    """Qualified names of documents created from a local file.

    Entries pinned in the workspace come first; when none match, any entry
    whose title equals the filename or whose URL ends with it is returned.
    """
    documents = await client.list_documents()

    pinned = [
        doc.qualified_name
        for doc in documents
        if _title_or_url_matches(doc, filename)
        and (workspace_slug is None or workspace_slug in doc.pinned_workspaces)
    ]
    if pinned:
        return pinned

    return [doc.qualified_name for doc in documents if _title_or_url_matches(doc, filename)]


async def document_exists(client: WorkspaceClient, name: str) -> bool:
    """Whether the service still knows a document, trying its short name too."""
    candidates = [name]
    short = name.rsplit("/", 1)[-1]
    if short != name:
        candidates.append(short)

    for candidate in candidates:
        try:
            await client.get_document(candidate)
            return True
        except APIClientError as e:
            if e.status_code not in (None, 404):
                raise
    return False
