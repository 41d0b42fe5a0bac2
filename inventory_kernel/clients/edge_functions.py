"""
HTTP client for server-side inventory functions.

The hosted backend exposes functions at ``{base_url}/functions/v1/{name}``
that perform an action and write its transaction server-side.  Every call is
a JSON POST with a bearer token and an ``x-app-version`` header, answered
with an envelope ``{"success": bool, "data": ..., "error": str | null}``.

A call succeeds only when the HTTP status is 2xx AND ``success`` is true;
anything else raises RemoteProcedureError so the caller can fall back to the
local algorithm.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

import httpx

from inventory_kernel.domain.records import format_quantity
from inventory_kernel.exceptions import RemoteProcedureError
from inventory_kernel.logging_config import get_logger

logger = get_logger("clients.edge_functions")

DEFAULT_TIMEOUT = 10.0  # seconds
DEFAULT_APP_VERSION = "7.6"

ADJUST_INVENTORY = "adjust-inventory"
ISSUE_INVENTORY = "issue-inventory"
RECEIVE_BULK_INVENTORY = "receive-bulk-inventory"


@runtime_checkable
class RemoteProcedures(Protocol):
    """Remote implementations of actions; each returns the response ``data``."""

    def adjust_inventory(
        self, inventory_id: int, new_quantity: Decimal, reason: str = ""
    ) -> Any: ...

    def issue_inventory(
        self,
        inventory_id: int,
        crew_id: int | None = None,
        area_id: int | None = None,
        location_id: int | None = None,
        notes: str = "",
    ) -> Any: ...

    def receive_bulk_inventory(
        self, data: Mapping[str, Any], operation: str = "add"
    ) -> Any: ...


def _jsonable(value: Any) -> Any:
    # Fractional quantities go as strings; a float would round them.
    if isinstance(value, Decimal):
        return format_quantity(value) if value != value.to_integral_value() else int(value)
    return value


class EdgeFunctionClient:
    """
    Synchronous client over ``httpx.Client``.

    Args:
        base_url: Backend URL (without ``/functions/v1``).
        token_provider: Returns the current access token, or None when the
            user is not authenticated.
        timeout: Per-request timeout in seconds.
        app_version: Sent as ``x-app-version``.
        client: Pre-built ``httpx.Client`` (tests pass one with a
            MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str | None],
        timeout: float = DEFAULT_TIMEOUT,
        app_version: str = DEFAULT_APP_VERSION,
        client: httpx.Client | None = None,
    ):
        self._functions_url = f"{base_url.rstrip('/')}/functions/v1"
        self._token_provider = token_provider
        self._app_version = app_version
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> EdgeFunctionClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def call(self, function_name: str, payload: Mapping[str, Any]) -> Any:
        """
        POST ``payload`` to a function and return the envelope's ``data``.

        Raises:
            RemoteProcedureError: not authenticated, transport failure,
                non-2xx status, unparseable body, or ``success`` false.
        """
        token = self._token_provider()
        if not token:
            raise RemoteProcedureError(function_name, "Not authenticated")

        url = f"{self._functions_url}/{function_name}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "x-app-version": self._app_version,
        }
        body = {key: _jsonable(value) for key, value in payload.items()}

        start = time.monotonic()
        try:
            response = self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(
                "remote_procedure_unreachable",
                extra={"function_name": function_name, "error": str(exc)},
            )
            raise RemoteProcedureError(function_name, str(exc)) from exc
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        try:
            envelope = response.json()
        except ValueError as exc:
            raise RemoteProcedureError(
                function_name, f"Invalid response body: {response.text[:200]}", response.status_code
            ) from exc

        if not response.is_success or not isinstance(envelope, dict) or not envelope.get("success"):
            error = envelope.get("error") if isinstance(envelope, dict) else None
            logger.warning(
                "remote_procedure_rejected",
                extra={
                    "function_name": function_name,
                    "status_code": response.status_code,
                    "error": error,
                    "duration_ms": duration_ms,
                },
            )
            raise RemoteProcedureError(
                function_name, error or "Edge function call failed", response.status_code
            )

        logger.info(
            "remote_procedure_completed",
            extra={
                "function_name": function_name,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return envelope.get("data")

    def adjust_inventory(
        self, inventory_id: int, new_quantity: Decimal, reason: str = ""
    ) -> Any:
        return self.call(
            ADJUST_INVENTORY,
            {"inventory_id": inventory_id, "new_quantity": new_quantity, "reason": reason},
        )

    def issue_inventory(
        self,
        inventory_id: int,
        crew_id: int | None = None,
        area_id: int | None = None,
        location_id: int | None = None,
        notes: str = "",
    ) -> Any:
        return self.call(
            ISSUE_INVENTORY,
            {
                "inventory_id": inventory_id,
                "crew_id": crew_id,
                "area_id": area_id,
                "location_id": location_id,
                "notes": notes,
            },
        )

    def receive_bulk_inventory(
        self, data: Mapping[str, Any], operation: str = "add"
    ) -> Any:
        return self.call(RECEIVE_BULK_INVENTORY, {**data, "operation": operation})
