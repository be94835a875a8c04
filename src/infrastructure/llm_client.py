import aiohttp
import asyncio
import logging
from typing import Dict, List

from src.domain.exceptions import ReviewEndpointException

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.2


class ChatCompletionClient:
    """
    Minimal client for an OpenAI-compatible `/v1/chat/completions` endpoint.
    Every call is bounded by `timeout_ms`; there are no retries.
    """

    def __init__(self, session: aiohttp.ClientSession, api_url: str, api_key: str, model: str, timeout_ms: int):
        self.session = session
        self.endpoint = f"{api_url.rstrip('/')}/v1/chat/completions"
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)

    async def complete(self, messages: List[Dict[str, str]], temperature: float = DEFAULT_TEMPERATURE) -> str:
        """
        Sends one chat completion request.

        Returns:
            str: Content of the first choice's message (empty if the response has none).

        Raises:
            ReviewEndpointException: On a non-success status, I/O failure, timeout or undecodable body.
        """
        payload = {
            "model": self.model,
            "temperature": temperature,
            "messages": messages,
        }
        try:
            async with self.session.post(self.endpoint, json=payload, headers=self.headers, timeout=self.timeout) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise ReviewEndpointException(f"HTTP {response.status} {response.reason} :: {detail[:200]}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ReviewEndpointException(f"Review request failed: {e!r}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return content if isinstance(content, str) else ""
