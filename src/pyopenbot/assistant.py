"""Async client for the remote conversational service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from pydantic import ValidationError

from pyopenbot._transport import AssistantTransport, HttpAssistantTransport
from pyopenbot.config import OpenBotConfig
from pyopenbot.exceptions import AssistantResponseError, AssistantTransportError, OpenBotError
from pyopenbot.models.assistant import (
    AssistantFailure,
    AssistantFailureReason,
    AssistantReply,
    AssistantResult,
    ChatCompletionRequest,
    ChatCompletionResponse,
)

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingRequest:
    """The single request a client may have in flight."""

    utterance: str
    future: asyncio.Future[AssistantResult]
    created_at: float = field(default_factory=lambda: asyncio.get_running_loop().time())

    def age(self) -> float:
        """Seconds since the request was issued."""
        return asyncio.get_running_loop().time() - self.created_at


def parse_chat_completion(body: Any) -> str:
    """Extract the first choice's message content from a response body.

    Raises
    ------
    AssistantResponseError
        If *body* is not a well-formed chat completion.
    """
    try:
        return ChatCompletionResponse.model_validate(body).reply
    except ValidationError as exc:
        raise AssistantResponseError(f"Malformed chat completion: {exc.error_count()} error(s)") from exc


class RemoteAssistantClient:
    """Async client for a chat-completion endpoint.

    At most one request is outstanding per instance; an ``ask()`` issued
    while another is in flight is dropped and answered with
    ``AssistantFailure(BUSY)``. No exception crosses :meth:`ask`.

    Usage::

        async with RemoteAssistantClient(config) as assistant:
            result = await assistant.ask("tell me a joke")
    """

    def __init__(
        self,
        config: OpenBotConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: AssistantTransport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._external_transport = transport is not None
        self._pending: PendingRequest | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RemoteAssistantClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpAssistantTransport(
                self._http_session,
                timeout=self._config.request_timeout,
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the owned HTTP session, if any."""
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    @property
    def pending(self) -> PendingRequest | None:
        """The outstanding request, or ``None`` when idle."""
        return self._pending

    @property
    def is_busy(self) -> bool:
        return self._pending is not None

    def _require_transport(self) -> AssistantTransport:
        if self._transport is None:
            raise OpenBotError("Client not initialized. Use 'async with RemoteAssistantClient(...) as client:'")
        return self._transport

    async def ask(self, utterance: str) -> AssistantResult:
        """Send *utterance* as a single-turn chat and return the reply.

        Parameters
        ----------
        utterance : str
            User text, forwarded verbatim.

        Returns
        -------
        AssistantReply or AssistantFailure
            The first choice's content, or why there is none.
        """
        outstanding = self._pending
        if outstanding is not None:
            age = outstanding.age()
            _logger.warning(
                "Dropping utterance %r: a remote request for %r has been outstanding for %.1fs",
                utterance,
                outstanding.utterance,
                age,
            )
            return AssistantFailure(
                reason=AssistantFailureReason.BUSY,
                message=f"a request has been in flight for {age:.1f}s",
            )

        if not self._config.assistant_configured:
            _logger.debug("Remote assistant has no API key configured")
            return AssistantFailure(
                reason=AssistantFailureReason.NOT_CONFIGURED,
                message="no API key configured",
            )

        transport = self._require_transport()
        loop = asyncio.get_running_loop()
        pending = PendingRequest(utterance=utterance, future=loop.create_future())
        self._pending = pending
        try:
            try:
                result = await self._round_trip(transport, utterance)
            except BaseException:
                pending.future.cancel()
                raise
            pending.future.set_result(result)
            return result
        finally:
            self._pending = None

    async def _round_trip(self, transport: AssistantTransport, utterance: str) -> AssistantResult:
        request = ChatCompletionRequest.for_utterance(self._config.assistant_model, utterance)
        api_key = (self._config.assistant_api_key or "").strip()
        try:
            body = await transport.post_json(
                self._config.assistant_url,
                request.model_dump(mode="json"),
                api_key=api_key,
            )
            reply = parse_chat_completion(body)
        except AssistantTransportError as exc:
            reason = (
                AssistantFailureReason.HTTP_STATUS
                if exc.status_code is not None
                else AssistantFailureReason.TRANSPORT
            )
            _logger.warning("Remote assistant request failed: %s", exc)
            return AssistantFailure(reason=reason, message=str(exc), status_code=exc.status_code)
        except AssistantResponseError as exc:
            _logger.warning("Remote assistant returned an unusable reply: %s", exc)
            return AssistantFailure(reason=AssistantFailureReason.MALFORMED, message=str(exc))
        except Exception as exc:
            _logger.warning("Remote assistant transport raised unexpectedly", exc_info=True)
            return AssistantFailure(reason=AssistantFailureReason.TRANSPORT, message=repr(exc))

        _logger.debug("Remote assistant replied with %d chars", len(reply))
        return AssistantReply(text=reply)
