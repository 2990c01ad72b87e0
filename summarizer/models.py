"""CompletionClient - async HTTP client for chat-completions compatible APIs."""

import asyncio
from typing import Awaitable, Callable, TypeVar

import aiohttp

from summarizer.config import ApiConfig, require_api
from summarizer.exceptions import NetworkError

T = TypeVar("T")


def completions_url(base: str) -> str:
    """Normalize a base URL to the chat completions endpoint."""
    base = base.strip().rstrip("/")
    if base.endswith("/chat/completions"):
        return base
    if base.endswith("/v1"):
        return base + "/chat/completions"
    return base + "/v1/chat/completions"


def models_url(base: str) -> str:
    """Normalize a base URL to the models listing endpoint."""
    base = base.strip().rstrip("/")
    if base.endswith("/models"):
        return base
    if "/chat/completions" in base:
        return base.replace("/chat/completions", "/models")
    if base.endswith("/v1"):
        return base + "/models"
    return base + "/v1/models"


def parse_model_ids(data: dict) -> list[str]:
    """Accept ``data`` or ``models`` arrays of ids or ``{id|name}`` objects."""
    entries = data.get("data") or data.get("models") or []
    ids: list[str] = []
    for entry in entries:
        if isinstance(entry, str):
            model_id = entry
        elif isinstance(entry, dict):
            model_id = entry.get("id") or entry.get("name") or ""
        else:
            continue
        if model_id:
            ids.append(str(model_id))
    return ids


async def _read_json(resp: aiohttp.ClientResponse) -> object:
    try:
        return await resp.json(content_type=None)
    except ValueError as e:
        raise NetworkError(f"Endpoint returned invalid JSON: {e}") from e


def parse_completion(data: object) -> str:
    """Return ``choices[0].message.content`` or raise NetworkError."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise NetworkError("Completion response is missing choices[0].message.content")
    if not isinstance(content, str):
        raise NetworkError("Completion response content is not text")
    return content


class CompletionClient:
    """Direct async HTTP client for a chat-completions endpoint."""

    def __init__(self, api: ApiConfig):
        self.api = api

    async def complete(self, prompt: str) -> str:
        """Send one user prompt and return the generated text. POST /chat/completions"""
        require_api(self.api, need_model=True)
        payload = {
            "model": self.api.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.api.temperature,
            "max_tokens": self.api.max_tokens,
        }

        async def _request() -> str:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    completions_url(self.api.endpoint),
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    if resp.status < 200 or resp.status >= 300:
                        body = await resp.text()
                        raise NetworkError(f"Completion failed (HTTP {resp.status}): {body[:200]}")
                    data = await _read_json(resp)
                    return parse_completion(data)

        return await self._with_retry("completion", _request)

    async def list_models(self) -> list[str]:
        """List model ids offered by the endpoint. GET /models"""
        require_api(self.api, need_model=False)

        async def _request() -> list[str]:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.get(
                    models_url(self.api.endpoint),
                    headers=self._headers(),
                ) as resp:
                    if resp.status < 200 or resp.status >= 300:
                        body = await resp.text()
                        raise NetworkError(f"Failed to list models (HTTP {resp.status}): {body[:200]}")
                    data = await _read_json(resp)
                    if not isinstance(data, dict):
                        raise NetworkError("Models response is not a JSON object")
                    return parse_model_ids(data)

        return await self._with_retry("list models", _request)

    async def test_connection(self) -> bool:
        """Send a tiny completion and report whether the endpoint answered with choices."""
        require_api(self.api, need_model=True)
        payload = {
            "model": self.api.model,
            "messages": [{"role": "user", "content": "hi"}],
            "max_tokens": 5,
        }

        async def _request() -> bool:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    completions_url(self.api.endpoint),
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    if resp.status < 200 or resp.status >= 300:
                        raise NetworkError(f"Connection test failed (HTTP {resp.status})")
                    data = await _read_json(resp)
                    if not isinstance(data, dict) or "choices" not in data:
                        raise NetworkError("Unexpected response from completions endpoint")
                    return True

        return await self._with_retry("connection test", _request)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api.api_key}",
        }

    def _timeout(self) -> aiohttp.ClientTimeout:
        """Build a client timeout configuration from settings."""
        return aiohttp.ClientTimeout(
            total=None,
            connect=self.api.connect_timeout,
            sock_connect=self.api.connect_timeout,
            sock_read=self.api.read_timeout,
        )

    async def _with_retry(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run an async operation with exponential backoff on transport errors.

        HTTP status failures are raised straight away; only connection-level
        problems are retried.
        """
        delay = 1.0
        last_error: Exception | None = None
        for attempt in range(1, self.api.max_retries + 1):
            try:
                return await func()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt >= self.api.max_retries:
                    break
                await asyncio.sleep(delay)
                delay *= 2

        raise NetworkError(self._connection_error_message(operation, last_error))

    def _connection_error_message(self, operation: str, error: Exception | None) -> str:
        details = f"{error}" if error else "unknown error"
        return (
            f"Cannot reach {self.api.endpoint} during {operation} "
            f"(after {self.api.max_retries} attempt(s)): {details}"
        )
