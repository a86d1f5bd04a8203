"""HTTP transport for the remote chat-completion endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pyopenbot._constants import USER_AGENT
from pyopenbot._redact import redact_headers, summarize_chat
from pyopenbot.exceptions import AssistantTransportError

_logger = logging.getLogger(__name__)


class AssistantTransport(Protocol):
    """Structural transport interface used by the assistant client.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpAssistantTransport`) concrete.
    """

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        api_key: str,
    ) -> dict[str, Any]:
        ...


class HttpAssistantTransport:
    """aiohttp transport that POSTs JSON with a bearer credential."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 15.0,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        api_key: str,
    ) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON object.

        Raises
        ------
        AssistantTransportError
            On network failure, timeout, a non-2xx status, or a body that is
            not a UTF-8 JSON object.
        """
        headers: dict[str, str] = {
            "authorization": f"Bearer {api_key}",
            "content-type": "application/json",
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        body = json.dumps(payload, separators=(",", ":"))

        _logger.debug("POST %s headers=%s body=%s", url, redact_headers(headers), summarize_chat(payload))

        try:
            async with self._http.post(url, data=body, headers=headers, timeout=self._timeout) as resp:
                raw = await resp.read()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AssistantTransportError(
                f"Request to {url} failed: {exc!r}",
                endpoint=url,
            ) from exc

        if not 200 <= status < 300:
            preview = raw[:200].decode("utf-8", errors="replace")
            raise AssistantTransportError(
                f"HTTP {status} from {url}: {preview}",
                status_code=status,
                endpoint=url,
            )

        try:
            result = json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise AssistantTransportError(
                f"Response from {url} is not valid UTF-8 ({len(raw)} bytes)",
                endpoint=url,
            ) from exc
        except json.JSONDecodeError as exc:
            raise AssistantTransportError(
                f"Invalid JSON from {url}: {raw[:200].decode('utf-8', errors='replace')}",
                endpoint=url,
            ) from exc

        if not isinstance(result, dict):
            raise AssistantTransportError(
                f"Expected a JSON object from {url}, got {type(result).__name__}",
                endpoint=url,
            )

        _logger.debug("Response from %s: %s", url, summarize_chat(result))
        return result
