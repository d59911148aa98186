"""Remote procedure/REST client: lowest level, sends requests only. No shaping."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import httpx

from core.errors import FetchError
from core.settings import settings


logger = logging.getLogger(__name__)

FilterValue = Union[str, int, bool, Tuple[str, Any]]


def _format_filter(value: FilterValue) -> str:
    """``value`` -> ``eq.value``; ``("neq", value)`` -> ``neq.value``."""
    if isinstance(value, tuple):
        operator, operand = value
    else:
        operator, operand = "eq", value
    if isinstance(operand, bool):
        operand = "true" if operand else "false"
    if isinstance(operand, (list, tuple)):
        operand = "(" + ",".join(str(v) for v in operand) + ")"
    return f"{operator}.{operand}"


class RpcClient:
    """Client for the reservation backend's table reads and remote functions."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.rpc_base_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.rpc_api_key
        self._timeout = timeout if timeout is not None else settings.rpc_timeout_seconds
        self._transport = transport

    @property
    def timeout(self) -> float:
        return self._timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[Sequence[Tuple[str, str]]] = None,
        json_body: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(
                    method, url, params=params, json=json_body, headers=self._headers()
                )
        except httpx.TimeoutException as e:
            logger.error(f"{operation} timed out after {self._timeout}s")
            raise FetchError(
                operation, f"Timeout: {operation} took longer than {self._timeout:g} seconds", timed_out=True
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{operation} failed: {e}")
            raise FetchError(operation, f"{operation} failed: {e}") from e

        if not response.is_success:
            detail = response.text[:500] if response.text else None
            logger.error(f"{operation} returned {response.status_code}: {detail}")
            raise FetchError(
                operation,
                f"{operation} failed with status {response.status_code}",
                status_code=response.status_code,
                detail=detail,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(operation, f"{operation} returned an invalid JSON body") from e

    async def call(self, function_name: str, params: Mapping[str, Any]) -> Any:
        """
        Call a remote function.

        Args:
            function_name: Name of the remote function
            params: JSON arguments

        Returns:
            Decoded JSON result (None for an empty body)

        Raises:
            FetchError: on network errors, timeouts and non-2xx responses
        """
        return await self._request(function_name, "POST", f"/rest/v1/rpc/{function_name}", json_body=params)

    async def select(
        self,
        table: str,
        select: str = "*",
        filters: Optional[Mapping[str, FilterValue]] = None,
        order: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Read rows from a table.

        Filters map a column to a value (equality) or an ``(operator, value)``
        pair such as ``("neq", "cancelled")``.
        """
        params: List[Tuple[str, str]] = [("select", "".join(select.split()))]
        for column, value in (filters or {}).items():
            params.append((column, _format_filter(value)))
        if order:
            params.append(("order", order))

        rows = await self._request(f"select {table}", "GET", f"/rest/v1/{table}", params=params)
        return rows or []
