#!/usr/bin/env python3
"""
Paprika Cloud Sync Client
=========================

Single entry point for the Paprika cloud sync API (v1).

The API is list-plus-detail: list endpoints return only identifiers (and
sometimes names), full records come from one detail request per recipe.

Usage:
    from paprika_client import PaprikaClient, PaprikaClientError

    client = PaprikaClient(email="me@example.com", password="secret")
    try:
        index = client.list_recipes()           # [{"uid": ..., "hash": ...}]
        recipe = client.get_recipe_detail(index[0]["uid"])
        categories = client.list_categories()
    finally:
        client.close()

Architecture:
    PaprikaClient (public facade, implements RemoteRecipeService)
    └── _PaprikaAPIAdapter (internal - HTTP)
        ├── Connection pooling via requests.Session
        ├── HTTP Basic auth
        └── gzip bodies decoded even without a Content-Encoding header

There are no automatic retries: each request is attempted once and failures
are raised to the caller, which decides whether the failure is fatal.
"""

import gzip
import json
from typing import Any, Dict, List, Optional, Union

import requests
from requests.adapters import HTTPAdapter

from config import API_BASE_URL, API_TIMEOUT
from tools.logging_utils import get_logger

# Module logger
logger = get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class PaprikaClientError(Exception):
    """
    Base exception for PaprikaClient errors.

    Attributes:
        message: Human-readable error description
        operation: The operation that failed (e.g., "GET", "list_recipes")
        details: Additional context (e.g., HTTP status code, response body)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context."""
        parts = [self.message]
        if self.operation:
            parts.insert(0, f"[{self.operation}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class PaprikaAPIError(PaprikaClientError):
    """Exception raised for API-specific errors (HTTP failures, timeouts)."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if status_code is not None:
            details['status_code'] = status_code
        if response_body:
            # Truncate long response bodies
            details['response'] = response_body[:200] + "..." if len(response_body) > 200 else response_body
        super().__init__(message, operation, details)
        self.status_code = status_code
        self.response_body = response_body


class PaprikaResponseError(PaprikaClientError):
    """Exception raised when a response body is not the expected shape."""


# =============================================================================
# INTERNAL: API ADAPTER
# =============================================================================

class _PaprikaAPIAdapter:
    """
    Internal adapter for Paprika REST calls.

    This class is internal - external code should use PaprikaClient.
    """

    # Connection pool configuration
    POOL_CONNECTIONS = 2
    POOL_MAXSIZE = 4

    def __init__(self, base_url: str, email: str, password: str, timeout: float):
        """
        Args:
            base_url: API root (e.g., "https://www.paprikaapp.com/api/v1")
            email: Paprika account email
            password: Paprika account password
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = requests.Session()
        self.session.auth = (email, password)

        # max_retries=0: one attempt per request, failures go to the caller
        adapter = HTTPAdapter(
            pool_connections=self.POOL_CONNECTIONS,
            pool_maxsize=self.POOL_MAXSIZE,
            max_retries=0,
        )
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        self.session.headers.update({
            'Accept-Encoding': 'gzip',
            'Accept': 'application/json',
        })

        logger.debug(f"_PaprikaAPIAdapter initialized: base_url={self.base_url}")

    def close(self) -> None:
        """Clean up connections."""
        self.session.close()

    @staticmethod
    def _decode_body(content: bytes) -> Any:
        """
        Parse a response body that may still be gzip-compressed.

        Paprika sometimes gzips bodies without declaring it, so requests does
        not decompress them; detect the gzip magic bytes instead.
        """
        if not content:
            return {}
        try:
            if content[:2] == GZIP_MAGIC:
                content = gzip.decompress(content)
            return json.loads(content.decode('utf-8'))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise PaprikaResponseError(
                f"Failed to decode response body: {e}",
                operation="decode",
            ) from e

    def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> Union[Any, bool]:
        """
        Perform an HTTP request with error handling.

        Returns:
            Parsed JSON response, or True for DELETE

        Raises:
            PaprikaAPIError: On HTTP or network errors
            PaprikaResponseError: On undecodable bodies
        """
        url = f"{self.base_url}{endpoint}"
        timeout = timeout or self.timeout

        try:
            response = self.session.request(method, url, json=data, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            response = e.response
            raise PaprikaAPIError(
                f"HTTP error: {e}",
                operation=method,
                status_code=response.status_code if response is not None else None,
                response_body=response.text if response is not None else None,
                details={'endpoint': endpoint},
            ) from e
        except requests.exceptions.Timeout as e:
            raise PaprikaAPIError(
                f"Request timed out after {timeout}s",
                operation=method,
                details={'endpoint': endpoint, 'timeout': timeout},
            ) from e
        except requests.exceptions.RequestException as e:
            raise PaprikaAPIError(
                f"Network error: {e}",
                operation=method,
                details={'endpoint': endpoint},
            ) from e

        if method == "DELETE":
            return True

        return self._decode_body(response.content)

    def get(self, endpoint: str) -> Any:
        """Perform a GET request."""
        return self._request("GET", endpoint)

    def post(self, endpoint: str, data: Dict[str, Any]) -> Any:
        """Perform a POST request."""
        return self._request("POST", endpoint, data=data)

    def delete(self, endpoint: str) -> bool:
        """Perform a DELETE request."""
        return self._request("DELETE", endpoint)


def _unwrap_result(payload: Any) -> Any:
    """Paprika wraps most payloads as {"result": ...}; accept both forms."""
    if isinstance(payload, dict) and "result" in payload:
        return payload["result"]
    return payload


def _require_list(payload: Any, operation: str) -> List[Dict[str, Any]]:
    items = _unwrap_result(payload)
    if not isinstance(items, list):
        raise PaprikaResponseError(
            f"Expected a list, got {type(items).__name__}",
            operation=operation,
        )
    for item in items:
        if not isinstance(item, dict) or not item.get("uid"):
            raise PaprikaResponseError(
                "List entry without uid",
                operation=operation,
                details={'entry': str(item)[:100]},
            )
    return items


def _require_record(payload: Any, operation: str) -> Dict[str, Any]:
    record = _unwrap_result(payload)
    if not isinstance(record, dict) or not record.get("uid"):
        raise PaprikaResponseError(
            "Expected a record with a uid",
            operation=operation,
            details={'response': str(record)[:100]},
        )
    return record


class PaprikaClient:
    """
    Client for the Paprika cloud sync API.

    Implements the RemoteRecipeService protocol used by SyncService.
    """

    def __init__(
        self,
        email: str,
        password: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            email: Paprika account email
            password: Paprika account password
            base_url: Override API URL (default: from config)
            timeout: Override request timeout (default: from config)
        """
        self._base_url = base_url or API_BASE_URL
        self._api = _PaprikaAPIAdapter(self._base_url, email, password, timeout or API_TIMEOUT)
        logger.info(f"PaprikaClient initialized for {self._base_url}")

    def close(self) -> None:
        """Clean up resources."""
        self._api.close()

    def __enter__(self) -> "PaprikaClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def list_categories(self) -> List[Dict[str, Any]]:
        """
        Fetch every category.

        Returns:
            List of {"uid", "name", "order_flag", "parent_uid"} dicts
        """
        return _require_list(self._api.get('/categories'), "list_categories")

    def list_recipes(self) -> List[Dict[str, Any]]:
        """
        Fetch the recipe index (identifiers only, no detail).

        Returns:
            List of {"uid", "hash"/"name"?} dicts
        """
        return _require_list(self._api.get('/sync/recipes'), "list_recipes")

    def get_recipe_detail(self, uid: str) -> Dict[str, Any]:
        """
        Fetch one full recipe.

        Returns:
            Recipe dict; `categories` holds category uids when present
        """
        return _require_record(self._api.get(f'/sync/recipe/{uid}'), "get_recipe_detail")

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def create_recipe(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a recipe remotely."""
        if not data.get('name'):
            raise PaprikaClientError("Recipe data must contain 'name'", operation="create_recipe")
        return _unwrap_result(self._api.post('/recipes', data))

    def update_recipe(self, uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite an existing remote recipe."""
        return _unwrap_result(self._api.post(f'/recipes/{uid}', data))

    def delete_recipe(self, uid: str) -> bool:
        """Delete a remote recipe."""
        return self._api.delete(f'/recipes/{uid}')
