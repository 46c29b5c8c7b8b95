"""AI text function backed by the workspace chat endpoint.

The rest of the application treats AI analysis as an opaque remote call:
a prompt goes in, free text comes out. Callers parse JSON out of the text
with ``parse_json_safely``.
"""

from typing import Any, Optional, Union

from docintel.core.workspace_client import WorkspaceClient
from docintel.utils.json_parser import parse_json_safely
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


class WorkspaceChatAI:
    """Runs prompts through a workspace's retrieval-augmented chat."""

    def __init__(self, client: WorkspaceClient, mode: str = "query"):
        """Initialize the AI function.

        Args:
            client: Workspace service client
            mode: Chat mode; "query" answers only from embedded documents
        """
        self.client = client
        self.mode = mode

    async def complete(self, prompt: str, workspace_slug: str) -> str:
        """Send a prompt and return the raw text answer.

        Args:
            prompt: Full prompt text
            workspace_slug: Workspace whose documents ground the answer

        Returns:
            str: The answer text, possibly empty
        """
        LOGGER.debug(
            "Calling workspace chat",
            extra={"workspace": workspace_slug, "prompt_chars": len(prompt), "mode": self.mode},
        )
        return await self.client.chat(workspace_slug, prompt, mode=self.mode)

    async def complete_json(
        self,
        prompt: str,
        workspace_slug: str,
    ) -> tuple[str, Optional[Union[dict, list]]]:
        """Send a prompt and parse the JSON payload out of the answer.

        Returns:
            Tuple of (raw text, parsed JSON or None)
        """
        text = await self.complete(prompt, workspace_slug)
        parsed: Any = parse_json_safely(text)
        return text, parsed
