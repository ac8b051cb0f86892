"""Async wrapper around RPC-style (form POST, JSON reply) cloud APIs."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

import httpx
import structlog

from amqp_provisioner.api.errors import ApiError, RegionMismatchError
from amqp_provisioner.config.models import ProviderConfig

logger = structlog.get_logger()

# Receives the flattened form parameters and returns them signed.
Signer = Callable[[dict[str, str]], dict[str, str]]


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_params(params: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """Flatten nested request parameters into RPC form fields.

    Lists are 1-indexed and maps use dotted keys, so
    ``{"Parameter": [{"Code": "MaxTps", "Value": "1000"}]}`` becomes
    ``{"Parameter.1.Code": "MaxTps", "Parameter.1.Value": "1000"}``.
    ``None`` values are dropped.
    """
    flat: dict[str, str] = {}
    for key, value in params.items():
        name = f"{prefix}{key}"
        if value is None:
            continue
        if isinstance(value, dict):
            flat.update(flatten_params(value, prefix=f"{name}."))
        elif isinstance(value, list | tuple):
            for index, item in enumerate(value, start=1):
                if isinstance(item, dict):
                    flat.update(flatten_params(item, prefix=f"{name}.{index}."))
                elif item is not None:
                    flat[f"{name}.{index}"] = _scalar(item)
        else:
            flat[name] = _scalar(value)
    return flat


class RpcClient:
    """Thin async client issuing one signed POST per API action."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        signer: Signer | None = None,
        region_mismatch_codes: Iterable[str] = ("NotApplicable",),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._signer = signer
        self._region_mismatch_codes = frozenset(region_mismatch_codes)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_config(
        cls,
        provider: ProviderConfig,
        *,
        signer: Signer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RpcClient:
        return cls(
            timeout=provider.http_timeout_seconds,
            signer=signer,
            region_mismatch_codes=provider.retry.region_mismatch_codes,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RpcClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def call(
        self,
        url: str,
        action: str,
        version: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """POST *action* to *url* and return the decoded JSON body.

        Raises :class:`ApiError` (or :class:`RegionMismatchError`) when the API
        answers with an error, and lets ``httpx.TransportError`` propagate.
        """
        form = {
            "Action": action,
            "Version": version,
            "Format": "JSON",
            **flatten_params(params),
        }
        if self._signer is not None:
            form = self._signer(form)

        logger.debug("api.request", action=action, url=url)
        resp = await self._client.post(url, data=form)
        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.is_error or not isinstance(body, dict):
            raise self._error(action, params, resp, body)
        return body

    def _error(
        self,
        action: str,
        params: dict[str, Any],
        resp: httpx.Response,
        body: Any,
    ) -> ApiError:
        if isinstance(body, dict):
            code = str(body.get("Code", f"HTTP{resp.status_code}"))
            message = str(body.get("Message", ""))
            request_id = body.get("RequestId")
        else:
            body = None
            code = f"HTTP{resp.status_code}"
            message = resp.text[:200]
            request_id = None

        error_cls = (
            RegionMismatchError if code in self._region_mismatch_codes else ApiError
        )
        return error_cls(
            code,
            message,
            status_code=resp.status_code,
            request_id=request_id,
            action=action,
            request=params,
            response=body,
        )
