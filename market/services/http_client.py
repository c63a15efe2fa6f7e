from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Literal

import httpx


HttpMethod = Literal["GET", "POST"]


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    status_code: int | None
    detail: dict[str, Any]

    error_code: str | None = None
    error_message: str | None = None

    elapsed_ms: int | None = None
    debug_id: str | None = None


def _is_json_response(resp: httpx.Response) -> bool:
    ct = (resp.headers.get("content-type") or "").lower()
    return "application/json" in ct or ct.endswith("+json")


def _cap_text(s: str, *, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


def _elapsed_ms(resp: httpx.Response) -> int | None:
    # httpx only sets elapsed once a response stream is closed; mock transports may never do that
    try:
        return int(resp.elapsed.total_seconds() * 1000)
    except RuntimeError:
        return None


class GatewayHttpClient:
    """
    Shared HTTP client wrapper for payment gateway calls.

    - Uses one AsyncClient instance (connection pooling).
    - No retries; a failed call surfaces to the lifecycle layer.
    - Timeouts and transport errors come back as ok=False with no status code.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 20.0,
        max_response_body_chars: int = 20_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._max_body = max_response_body_chars
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request_json(
        self,
        *,
        method: HttpMethod,
        path: str,
        headers: Mapping[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        form: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> HttpResult:
        try:
            resp = await self._client.request(
                method=method,
                url=path,
                headers=dict(headers or {}),
                json=json_body,
                data=dict(form) if form is not None else None,
                auth=auth,
            )
        except httpx.TimeoutException as e:
            return HttpResult(
                ok=False,
                status_code=None,
                detail={"error": "timeout"},
                error_code="TIMEOUT",
                error_message=str(e),
            )
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return HttpResult(
                ok=False,
                status_code=None,
                detail={"error": "request_error"},
                error_code="REQUEST_ERROR",
                error_message=str(e),
            )

        detail: dict[str, Any]
        if _is_json_response(resp):
            try:
                parsed = resp.json()
                detail = parsed if isinstance(parsed, dict) else {"data": parsed}
            except ValueError:
                detail = {"raw": _cap_text(resp.text, max_chars=self._max_body)}
        else:
            detail = {
                "raw": _cap_text(resp.text, max_chars=self._max_body),
                "content_type": resp.headers.get("content-type"),
            }

        elapsed_ms = _elapsed_ms(resp)
        # PayPal correlation id, handy when opening a support ticket
        debug_id = resp.headers.get("paypal-debug-id") or None

        if 200 <= resp.status_code < 300:
            return HttpResult(
                ok=True,
                status_code=resp.status_code,
                detail=detail,
                elapsed_ms=elapsed_ms,
                debug_id=debug_id,
            )

        return HttpResult(
            ok=False,
            status_code=resp.status_code,
            detail=detail,
            error_code=f"HTTP_{resp.status_code}",
            error_message=f"HTTP {resp.status_code}",
            elapsed_ms=elapsed_ms,
            debug_id=debug_id,
        )
