"""
Fallback Resolver

Walks the candidate list one upstream at a time and decides, per response,
whether to stop or move on.

States:
    PENDING -> TRYING(i) -> SUCCEEDED | EXHAUSTED

The retry policy is data-driven: classify() maps an upstream observation to an
Outcome, and the walk only looks at outcomes. Candidates are never tried in
parallel and a failed candidate is never retried.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import httpx

from .candidates import UpstreamCandidate
from .config import GatewayConfig, USER_AGENT
from .errors import (
    ClientDisconnected,
    ContentUnavailable,
    HtmlContentRestricted,
    UpstreamTimeout,
    UpstreamUnreachable,
)
from .identifier import ContentIdentifier

logger = logging.getLogger(__name__)

# Request headers passed through to the upstream verbatim
FORWARDED_REQUEST_HEADERS = ("range", "if-none-match", "if-modified-since")

# Body markers of the public gateway's "HTML content not allowed" 403
HTML_RESTRICTION_MARKERS = (
    "ERR_ID:00023",
    "html content is not supported",
    "html content is not allowed",
)

# Error bodies are small; anything past this is not inspected
MAX_ERROR_BODY_BYTES = 64 * 1024

# How often an in-flight upstream call checks whether the client went away
DISCONNECT_POLL_SECONDS = 0.1


# ============================================
# States and outcomes
# ============================================

class ResolverState(str, Enum):
    PENDING = "pending"
    TRYING = "trying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class Outcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    HTML_RESTRICTED = "html_restricted"
    UPSTREAM_ERROR = "upstream_error"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"


def is_html_restriction(body: bytes) -> bool:
    text = body[:MAX_ERROR_BODY_BYTES].decode("utf-8", errors="replace").lower()
    return any(marker.lower() in text for marker in HTML_RESTRICTION_MARKERS)


def classify(status_code: int, body: bytes = b"") -> Outcome:
    """Map an upstream HTTP status (and error body) to an Outcome."""
    if 200 <= status_code < 400:
        return Outcome.SUCCESS
    if status_code in (401, 404):
        return Outcome.NOT_FOUND
    if status_code == 403 and is_html_restriction(body):
        return Outcome.HTML_RESTRICTED
    return Outcome.UPSTREAM_ERROR


# ============================================
# Data structures
# ============================================

@dataclass
class RelayResult:
    """The response chosen for the client."""
    status_code: int
    headers: Mapping[str, str]
    body: Union[AsyncIterator[bytes], bytes]
    upstream_url: str = ""
    response: Optional[httpx.Response] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    async def aclose(self) -> None:
        if self.response is not None:
            await self.response.aclose()


@dataclass
class Attempt:
    """Trace of one candidate attempt."""
    candidate: UpstreamCandidate
    outcome: Outcome
    status_code: Optional[int] = None
    error: Optional[str] = None
    response: Optional[httpx.Response] = field(default=None, repr=False)
    body: bytes = field(default=b"", repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "gateway": self.candidate.label,
            "outcome": self.outcome.value,
        }
        if self.status_code is not None:
            data["status"] = self.status_code
        if self.error:
            data["error"] = self.error
        return data


# ============================================
# Resolver
# ============================================

class FallbackResolver:
    """
    Tries upstream candidates in order until one answers successfully.

    The resolver owns no state between requests; one instance can serve the
    whole process. Each resolve() call keeps its own state and attempt list.
    """

    def __init__(self, client: httpx.AsyncClient, config: GatewayConfig):
        self.client = client
        self.config = config

    def build_headers(
        self, candidate: UpstreamCandidate, request_headers: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        """Outgoing headers: fixed User-Agent, conditional headers, credentials."""
        headers = {"User-Agent": USER_AGENT}

        if request_headers:
            lowered = {k.lower(): v for k, v in request_headers.items()}
            for name in FORWARDED_REQUEST_HEADERS:
                if lowered.get(name):
                    headers[name.title()] = lowered[name]

        if candidate.requires_auth:
            if self.config.gateway_key:
                headers["x-pinata-gateway-token"] = self.config.gateway_key
            elif self.config.pinata_jwt:
                headers["Authorization"] = f"Bearer {self.config.pinata_jwt}"
            else:
                logger.warning(
                    "[Resolver] Dedicated gateway needs auth but no "
                    "PINATA_GATEWAY_KEY or PINATA_JWT is configured"
                )
        return headers

    async def _send(
        self,
        request: httpx.Request,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]],
    ) -> httpx.Response:
        """
        Send one upstream request, abandoning it if the client disconnects.

        Raises:
            ClientDisconnected: the client went away before the upstream answered
        """
        if is_disconnected is None:
            return await self.client.send(request, stream=True)

        send = asyncio.create_task(self.client.send(request, stream=True))
        watcher = asyncio.create_task(self._wait_for_disconnect(is_disconnected))
        try:
            done, _ = await asyncio.wait({send, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watcher.cancel()
            if not send.done():
                send.cancel()

        if send in done:
            return send.result()

        await asyncio.wait({send})
        if not send.cancelled() and send.exception() is None:
            await send.result().aclose()
        # A failing disconnect check surfaces as is
        watcher.result()

        logger.info(f"[Resolver] Client went away, aborting upstream call: {request.url}")
        raise ClientDisconnected("Client disconnected")

    @staticmethod
    async def _wait_for_disconnect(is_disconnected: Callable[[], Awaitable[bool]]) -> None:
        while not await is_disconnected():
            await asyncio.sleep(DISCONNECT_POLL_SECONDS)

    async def _attempt(
        self,
        candidate: UpstreamCandidate,
        method: str,
        request_headers: Optional[Mapping[str, str]],
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> Attempt:
        logger.info(f"[Resolver] Trying ({candidate.label}): {candidate.url}")
        request = self.client.build_request(
            method,
            candidate.url,
            headers=self.build_headers(candidate, request_headers),
            timeout=candidate.timeout,
        )
        try:
            response = await self._send(request, is_disconnected)
        except httpx.TimeoutException as e:
            logger.warning(f"[Resolver] Timeout after {candidate.timeout}s: {candidate.url}")
            return Attempt(candidate, Outcome.TIMEOUT, error=str(e) or "timeout")
        except httpx.TransportError as e:
            logger.warning(f"[Resolver] Transport error from {candidate.url}: {e}")
            return Attempt(candidate, Outcome.TRANSPORT_ERROR, error=str(e) or type(e).__name__)

        status = response.status_code
        if 200 <= status < 400:
            logger.info(f"[Resolver] Success ({status}) from: {candidate.url}")
            return Attempt(candidate, Outcome.SUCCESS, status_code=status, response=response)

        try:
            body = await response.aread()
        except httpx.HTTPError as e:
            logger.warning(f"[Resolver] Failed reading error body from {candidate.url}: {e}")
            body = b""
        finally:
            await response.aclose()

        outcome = classify(status, body)
        logger.info(f"[Resolver] Failed with status {status} ({outcome.value}): {candidate.url}")
        return Attempt(candidate, outcome, status_code=status, response=response, body=body)

    async def resolve(
        self,
        identifier: ContentIdentifier,
        candidates: List[UpstreamCandidate],
        method: str = "GET",
        request_headers: Optional[Mapping[str, str]] = None,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> RelayResult:
        """
        Walk the candidates and return the response to relay.

        Returns:
            RelayResult with a streamed body on success, or a buffered upstream
            error the route must surface as is

        Raises:
            HtmlContentRestricted, UpstreamTimeout, UpstreamUnreachable,
            ContentUnavailable, ClientDisconnected
        """
        attempts: List[Attempt] = []
        remaining = list(candidates)
        final_attempt_only = False
        self._transition(identifier, ResolverState.PENDING)

        while remaining:
            if is_disconnected is not None and await is_disconnected():
                logger.info(f"[Resolver] Client went away, abandoning {identifier.clean_id}")
                raise ClientDisconnected("Client disconnected")

            candidate = remaining.pop(0)
            self._transition(identifier, ResolverState.TRYING, len(attempts))
            attempt = await self._attempt(candidate, method, request_headers, is_disconnected)
            attempts.append(attempt)

            if attempt.outcome is Outcome.SUCCESS:
                self._transition(identifier, ResolverState.SUCCEEDED)
                return self._success(attempt)

            if final_attempt_only:
                break

            if attempt.outcome is Outcome.HTML_RESTRICTED and not candidate.is_dedicated:
                dedicated = next((c for c in remaining if c.is_dedicated), None)
                if dedicated is not None:
                    logger.info("[Resolver] HTML restricted on public gateway, retrying on dedicated gateway")
                    remaining = [dedicated]
                    final_attempt_only = True
                    continue
                if not self.config.has_dedicated_gateway:
                    self._transition(identifier, ResolverState.EXHAUSTED)
                    raise HtmlContentRestricted(identifier.clean_id, candidate.url)
                # Dedicated gateway was already tried: an ordinary failure

        self._transition(identifier, ResolverState.EXHAUSTED)
        logger.warning(
            f"[Resolver] No gateway served {identifier.clean_id} after {len(attempts)} attempt(s)"
        )
        return self._exhausted(identifier, candidates, attempts, final_attempt_only)

    @staticmethod
    def _transition(identifier: ContentIdentifier, state: ResolverState, index: Optional[int] = None) -> None:
        suffix = f"({index})" if index is not None else ""
        logger.debug(f"[Resolver] {identifier.clean_id} -> {state.value}{suffix}")

    def _success(self, attempt: Attempt) -> RelayResult:
        response = attempt.response

        async def body() -> AsyncIterator[bytes]:
            try:
                async for chunk in response.aiter_bytes():
                    yield chunk
            finally:
                await response.aclose()

        return RelayResult(
            status_code=response.status_code,
            headers=response.headers,
            body=body(),
            upstream_url=attempt.candidate.url,
            response=response,
        )

    def _exhausted(
        self,
        identifier: ContentIdentifier,
        candidates: List[UpstreamCandidate],
        attempts: List[Attempt],
        after_html_retry: bool,
    ) -> RelayResult:
        trace = [a.to_dict() for a in attempts]
        if not attempts:
            raise ContentUnavailable(identifier.clean_id, trace)

        last = attempts[-1]
        if last.outcome is Outcome.TIMEOUT:
            raise UpstreamTimeout(
                f"Gateway timed out fetching {identifier.clean_id}",
                {"hash": identifier.clean_id, "attempts": trace},
            )
        if last.outcome is Outcome.TRANSPORT_ERROR:
            raise UpstreamUnreachable(
                f"Could not reach gateway for {identifier.clean_id}",
                {"hash": identifier.clean_id, "attempts": trace},
            )

        single_upstream = len(candidates) == 1 and candidates[0].supports_optimization
        surfaces_directly = after_html_retry or single_upstream
        if surfaces_directly and last.outcome is not Outcome.NOT_FOUND:
            # Nothing else could serve this request; show what the upstream said
            return RelayResult(
                status_code=last.status_code,
                headers=last.response.headers if last.response is not None else {},
                body=last.body,
                upstream_url=last.candidate.url,
            )

        raise ContentUnavailable(identifier.clean_id, trace)

