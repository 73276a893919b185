from __future__ import annotations

from typing import Any

import httpx

from repo_scan.exceptions import CompletionError, MissingCredentialError
from repo_scan.logging import logger


def first_message_text(data: dict[str, Any]) -> str:
    """Pick the text of the first ``message`` item of a Responses API payload.

    Args:
        data (dict[str, Any]): the decoded response, shaped ``{"output": [{"type", "content": [{"text"}]}]}``

    Returns:
        str: the text, or "" when the payload carries no message
    """
    for item in data.get("output") or []:
        if isinstance(item, dict) and item.get("type") == "message":
            content = item.get("content") or []
            if content and isinstance(content[0], dict):
                return str(content[0].get("text") or "")
            return ""
    return ""


class CompletionClient:
    """Client for an OpenAI-compatible ``/v1/responses`` endpoint.

    Non-2xx answers raise `CompletionError`; nothing is retried.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        *,
        model: str,
        api_url: str = "https://api.openai.com",
        timeout: float = 120.0,
    ) -> None:
        if not api_key:
            raise MissingCredentialError(name="OPENAI_API_KEY", client_error=False)
        self.http = http
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key

    async def complete(self, prompt: str) -> str:
        """Send `prompt` and return the text of the model's first message."""
        try:
            response = await self.http.post(
                f"{self.api_url}/v1/responses",
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
                json={"model": self.model, "input": prompt},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("completion_request_failed", error=str(e))
            raise CompletionError(detail=str(e)) from e
        if not 200 <= response.status_code < 300:  # noqa: PLR2004
            logger.error("completion_api_error", status_code=response.status_code, body=response.text[:2000])
            raise CompletionError(status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.error("completion_api_error", status_code=response.status_code, body=response.text[:2000])
            raise CompletionError(detail="invalid response body") from e
        if not isinstance(data, dict):
            raise CompletionError(detail="invalid response body")
        text = first_message_text(data)
        logger.info("completion_received", model=self.model, chars=len(text))
        return text
