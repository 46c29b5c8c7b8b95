import asyncio
import json
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import httpx
from httpx import HTTPStatusError, TimeoutException

from docintel.core.exceptions import APIClientError, APITimeoutError, NotConfiguredError
from docintel.schemas.ingestion import DocumentLocation, ExternalDocument, UploadedDocument
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


class WorkspaceClient:
    """Client for the external document indexing/embedding service.

    Every call goes to ``/api/v1{path}`` first and falls back to the legacy
    ``/api{path}`` route when the versioned one answers 404. Timeouts and 5xx
    responses are retried with exponential backoff; other 4xx responses
    (except 429) fail immediately.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: float = 2,
        default_upload_folder: str = "custom-documents",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the workspace client.

        Args:
            base_url: Service root, e.g. http://localhost:3001
            api_key: Bearer API key
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per call
            retry_delay: Base delay for exponential backoff
            default_upload_folder: Folder fresh uploads land in when the
                service reports only a bare name
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or "").strip().rstrip("/")
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.default_upload_folder = default_upload_folder
        self.transport = transport
        self.logger = LOGGER

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def request(
        self,
        path: str,
        method: str = "GET",
        payload: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Call the service with version fallback and retries.

        Args:
            path: Route below the API prefix, starting with "/"
            method: HTTP method
            payload: JSON body (query params for GET)
            files: Multipart files mapping, mutually exclusive with payload

        Returns:
            Parsed JSON when the response is JSON, otherwise None

        Raises:
            NotConfiguredError: If no API key is configured
            APIClientError: If the call fails after retries
            APITimeoutError: If the call keeps timing out
        """
        if not self.api_key:
            raise NotConfiguredError("NotConfigured: workspace service API key missing in settings")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        method = method.upper()

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await self._send(client, f"{self.base_url}/api/v1{path}", method, headers, payload, files)
                    if response.status_code == 404:
                        response = await self._send(client, f"{self.base_url}/api{path}", method, headers, payload, files)
                    response.raise_for_status()
                    return self._decode(response)

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, method, path)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, method, path)

                except httpx.TransportError as e:
                    await self._handle_transport_error(e, attempt, method, path)

        raise APIClientError(f"Workspace service {method} {path} failed after {self.max_retries} attempts")

    async def _send(
        self,
        client: httpx.AsyncClient,
        url: str,
        method: str,
        headers: Dict[str, str],
        payload: Optional[Dict[str, Any]],
        files: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        if files is not None:
            return await client.request(method, url, headers=headers, files=files)
        if method == "GET":
            return await client.request(method, url, headers=headers, params=payload)
        return await client.request(method, url, headers=headers, json=payload)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return None
        try:
            return response.json()
        except json.JSONDecodeError:
            return None

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, method: str, path: str):
        status_code = error.response.status_code
        body = error.response.text[:500]

        self.logger.warning(
            f"Workspace service HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"method": method, "path": path, "status_code": status_code, "error_body": body},
        )

        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(
                f"Workspace service {method} {path} failed: {status_code} {body}",
                status_code=status_code,
                original_error=error,
            ) from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(
                f"Workspace service {method} {path} failed: {status_code} {body}",
                status_code=status_code,
                original_error=error,
            ) from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, method: str, path: str):
        self.logger.warning(
            f"Workspace service timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"method": method, "path": path},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(
                f"Workspace service {method} {path} timed out after {self.max_retries} attempts",
                original_error=error,
            ) from error

    async def _handle_transport_error(self, error: httpx.TransportError, attempt: int, method: str, path: str):
        self.logger.warning(
            f"Workspace service connection error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"method": method, "path": path, "error": str(error)},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"Workspace service unreachable: {error}", original_error=error) from error

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        await asyncio.sleep(self.retry_delay * (2 ** attempt))

    # ------------------------------------------------------------------
    # Document library
    # ------------------------------------------------------------------

    async def list_documents(self) -> List[ExternalDocument]:
        """List every file the service knows, with folder-qualified names."""
        data = await self.request("/documents", "GET") or {}
        items = (data.get("localFiles") or {}).get("items") or []
        return flatten_documents(items)

    async def create_folder(self, name: str) -> Any:
        return await self.request("/document/create-folder", "POST", {"name": name})

    async def upload_document(self, content: bytes, filename: str) -> UploadedDocument:
        """Upload a file and resolve the identifier the service stored it under.

        Args:
            content: Raw file bytes
            filename: Name to upload the file as

        Returns:
            UploadedDocument with the relative identifier resolved once here

        Raises:
            APIClientError: If the upload fails or reports no usable document
        """
        response = await self.request("/document/upload", "POST", files={"file": (filename, content)}) or {}
        documents = response.get("documents") if isinstance(response, dict) else None
        first = documents[0] if isinstance(documents, list) and documents else {}

        raw_location = str(first.get("location") or "").strip()
        raw_name = str(first.get("name") or "").strip()

        if raw_location:
            location = DocumentLocation.parse(raw_location)
            return UploadedDocument(name=location.relative_name, location=location, title=first.get("title"))

        if raw_name:
            name = raw_name if "/" in raw_name else f"{self.default_upload_folder}/{raw_name}"
            return UploadedDocument(name=name, title=first.get("title"))

        raise APIClientError(f"Upload of {filename} returned no document name")

    async def move_document(self, source: str, target: str) -> bool:
        """Move a document between folders.

        Returns:
            False when the service explicitly reports ``success: false``
        """
        response = await self.request(
            "/document/move-files", "POST", {"files": [{"from": source, "to": target}]}
        )
        return not (isinstance(response, dict) and response.get("success") is False)

    async def get_document(self, name: str) -> Any:
        return await self.request(f"/document/{quote(name, safe='')}", "GET")

    async def remove_documents(self, names: Iterable[str]) -> Any:
        return await self.request("/system/remove-documents", "DELETE", {"names": list(names)})

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    async def update_embeddings(
        self,
        workspace_slug: str,
        adds: Optional[List[str]] = None,
        deletes: Optional[List[str]] = None,
    ) -> Any:
        payload: Dict[str, Any] = {}
        if adds:
            payload["adds"] = list(adds)
        if deletes:
            payload["deletes"] = list(deletes)
        return await self.request(f"/workspace/{quote(workspace_slug, safe='')}/update-embeddings", "POST", payload)

    async def update_pin(self, workspace_slug: str, doc_path: str, pin_status: bool) -> Any:
        return await self.request(
            f"/workspace/{quote(workspace_slug, safe='')}/update-pin",
            "POST",
            {"docPath": doc_path, "pinStatus": pin_status},
        )

    async def workspace_documents(self, workspace_slug: str) -> List[ExternalDocument]:
        """Documents currently embedded in a workspace."""
        data = await self.request(f"/workspace/{quote(workspace_slug, safe='')}", "GET") or {}
        workspace = data.get("workspace")
        if isinstance(workspace, list):
            workspace = workspace[0] if workspace else {}
        documents = (workspace or {}).get("documents") or []
        return [_workspace_document(doc) for doc in documents if isinstance(doc, dict)]

    async def chat(self, workspace_slug: str, message: str, mode: str = "query") -> str:
        """Send a prompt to the workspace chat and return its text answer."""
        response = await self.request(
            f"/workspace/{quote(workspace_slug, safe='')}/chat",
            "POST",
            {"message": message, "mode": mode},
        ) or {}
        return str(response.get("textResponse") or "")


def flatten_documents(node: Any, prefix: str = "") -> List[ExternalDocument]:
    """Flatten the service's folder tree into file entries.

    Args:
        node: Folder node, file node or list of nodes
        prefix: Qualified folder path accumulated so far

    Returns:
        File entries whose ``qualified_name`` is ``folder/.../name``
    """
    if not node:
        return []
    if isinstance(node, list):
        flattened: List[ExternalDocument] = []
        for child in node:
            flattened.extend(flatten_documents(child, prefix))
        return flattened
    if not isinstance(node, dict):
        return []

    name = str(node.get("name") or "")
    if node.get("type") == "file":
        return [
            ExternalDocument(
                name=name,
                qualified_name=f"{prefix}/{name}" if prefix else name,
                id=_optional_str(node.get("id")),
                title=node.get("title"),
                url=node.get("url"),
                location=node.get("location"),
                chunk_source=node.get("chunkSource"),
                pinned_workspaces=list(node.get("pinnedWorkspaces") or []),
            )
        ]

    next_prefix = f"{prefix}/{name}" if prefix and name else (prefix or name)
    return flatten_documents(node.get("items") or [], next_prefix)


def _workspace_document(doc: Dict[str, Any]) -> ExternalDocument:
    meta = doc.get("metadata")
    if isinstance(meta, str):
        try:
            meta = json.loads(meta)
        except json.JSONDecodeError:
            meta = {}
    meta = meta if isinstance(meta, dict) else {}

    docpath = str(doc.get("docpath") or doc.get("location") or doc.get("name") or "")
    return ExternalDocument(
        name=str(doc.get("filename") or doc.get("name") or docpath.rsplit("/", 1)[-1]),
        qualified_name=docpath,
        id=_optional_str(doc.get("docId") or doc.get("id")),
        title=meta.get("title") or doc.get("title"),
        url=meta.get("url"),
        location=docpath,
        chunk_source=meta.get("chunkSource"),
    )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
