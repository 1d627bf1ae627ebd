import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from loguru import logger

from lisk_dex_adapter.errors import transport_failure
from lisk_dex_adapter.models import EndpointSet

RequestFn = Callable[[str], Awaitable[Any]]


class FailoverClient:
    """FailoverClient sends HTTP requests to Lisk Service, falling back through alternate endpoints."""  # noqa: E501

    def __init__(self, endpoints: EndpointSet, timeout: float = 10.0) -> None:
        """
        Initialize the failover client.

        Args:
            endpoints (EndpointSet): The primary and fallback base URLs.
            timeout (float): Timeout in seconds of every single attempt.

        Attributes:
            endpoints (EndpointSet): The primary and fallback base URLs.
            timeout (aiohttp.ClientTimeout): Per attempt timeout.
            _session (Optional[aiohttp.ClientSession]): The http session, created on
                                                        first use.
        """
        self.endpoints = endpoints
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        """
        Asynchronously closes the session.

        This method should be called to properly close the session and release any
        resources associated with it.
        """
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
            )
        return self._session

    async def _send(
        self,
        base_url: str,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Sends a single request to one endpoint.

        Args:
            base_url (str): The endpoint to send the request to.
            method (str): HTTP method.
            path (str): Path appended to the base URL.
            params (Optional[Dict[str, Any]]): Query string parameters.
            payload (Optional[Dict[str, Any]]): JSON body.

        Returns:
            Any: The decoded JSON response.

        Raises:
            aiohttp.ClientResponseError: If the response status is not 2xx.
            aiohttp.ClientError: On connection errors.
            asyncio.TimeoutError: If the attempt exceeds the timeout.
        """
        async with self._get_session().request(
            method,
            f"{base_url}{path}",
            params=params,
            json=payload,
            timeout=self.timeout,
        ) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def _try_fallbacks(self, request_fn: RequestFn) -> Any:
        """
        Tries the request on each fallback in the declared order.

        Returns the response of the first fallback that does not raise; a falsy
        response still counts as a success.

        Raises:
            LookupError: If every fallback failed.
        """
        for fallback in self.endpoints.fallbacks:
            try:
                return await request_fn(fallback)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                logger.warning(
                    f"Failed to process request on fallback {fallback}: {exc}, "
                    "trying next fallback",
                )
        raise LookupError("No fallback succeeded")

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Sends a request to the primary endpoint, then to the fallbacks on failure.

        Attempts are strictly sequential so a state changing POST is never in
        flight on two endpoints at once.

        Args:
            method (str): HTTP method.
            path (str): Path appended to the base URL.
            params (Optional[Dict[str, Any]]): Query string parameters.
            payload (Optional[Dict[str, Any]]): JSON body.

        Returns:
            Any: The decoded JSON response of the first endpoint that succeeded.

        Raises:
            AdapterError: TRANSPORT_FAILURE carrying the primary endpoint's error
                          when every endpoint failed.
        """
        request_fn = partial(
            self._send, method=method, path=path, params=params, payload=payload,
        )
        try:
            return await request_fn(self.endpoints.primary)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning(
                f"Failed to {method} {path} from {self.endpoints.primary}: {exc}, "
                "trying fallbacks in given order",
            )
            try:
                return await self._try_fallbacks(request_fn)
            except LookupError:
                raise transport_failure(exc) from exc

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, payload=payload)
