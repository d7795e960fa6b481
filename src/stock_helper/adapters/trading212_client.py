"""
Client for the Trading 212 public equity API
https://t212public-api-docs.redoc.ly/
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional, Union

import requests

from stock_helper.core.errors import ConfigurationError, UpstreamError
from stock_helper.core.metrics import record_latency, record_upstream_error
from stock_helper.core.result import Success

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://live.trading212.com/api/v0"

ApiResult = Union[Success, UpstreamError]


def _extract_message(response: requests.Response) -> str:
    text = response.text or ""
    try:
        body = json.loads(text)
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return text or response.reason or f"HTTP {response.status_code}"


class Trading212Client:
    """
    Client for the Trading 212 account endpoints.

    Every method returns ``Success`` with the decoded JSON body or an
    ``UpstreamError`` value; HTTP and transport failures are never raised.
    """

    service = "trading212"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Args:
            api_key: API key id (TRADING212_API_KEY)
            api_secret: API secret (TRADING212_API_SECRET)
            base_url: live or demo API root
            timeout: per-request timeout in seconds
        """
        if not api_key or not api_secret:
            raise ConfigurationError("Trading 212 API key and secret are required")

        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        credentials = base64.b64encode(f"{api_key}:{api_secret}".encode("utf-8")).decode("ascii")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Basic {credentials}",
            "Content-Type": "application/json",
        })

    def execute_request(self, operation: str, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        """
        Perform a GET against the API.

        Args:
            operation: metrics label for the call
            path: API path, e.g. /equity/portfolio
            params: query parameters, already stripped of absent values

        Returns:
            Success with the JSON body, or UpstreamError
        """
        url = f"{self.base_url}{path}"
        try:
            with record_latency(self.service, operation):
                response = self.session.get(url, params=params or None, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Trading 212 %s failed: %s", operation, e)
            record_upstream_error(self.service, operation, "transport")
            return UpstreamError(message=f"API Error: {e}")

        if not response.ok:
            message = _extract_message(response)
            record_upstream_error(self.service, operation, str(response.status_code))
            logger.info("Trading 212 %s returned %s: %s", operation, response.status_code, message)
            return UpstreamError(
                message=f"API Error: {message}",
                code=str(response.status_code),
                status=response.status_code,
            )

        try:
            return Success(response.json())
        except ValueError as e:
            record_upstream_error(self.service, operation, "decode")
            return UpstreamError(
                message=f"API Error: invalid JSON in response ({e})",
                code=str(response.status_code),
                status=response.status_code,
            )

    def get_portfolio(self) -> ApiResult:
        """Open positions with cash, invested and total values"""
        return self.execute_request("get_portfolio", "/equity/portfolio")

    def get_account_cash(self) -> ApiResult:
        """Free, total and blocked cash"""
        return self.execute_request("get_account_cash", "/equity/account/cash")

    def get_orders_history(
        self,
        cursor: Optional[int] = None,
        limit: Optional[int] = None,
        ticker: Optional[str] = None,
    ) -> ApiResult:
        """Historical orders, paginated by cursor"""
        params: Dict[str, Any] = {}
        if ticker is not None:
            params["ticker"] = ticker
        if limit is not None:
            params["limit"] = limit
        if cursor is not None:
            params["cursor"] = cursor
        return self.execute_request("get_orders_history", "/equity/history/orders", params=params)

    def get_account_metadata(self) -> ApiResult:
        """Account currency and id"""
        return self.execute_request("get_account_metadata", "/equity/account/info")

    @staticmethod
    def is_error(result: Any) -> bool:
        return isinstance(result, UpstreamError)
