"""Shared HTTP plumbing for the backend service clients."""
import json
import logging
from typing import Any, Dict, Optional, Type

import requests

from datamapper.errors import DataMapperError, FetchFailure

logger = logging.getLogger(__name__)

JSON_HEADERS = {
    "Content-Type": "application/json; application/xml; application/octet-stream",
    "Accept": "application/json; application/xml; application/octet-stream",
}


class ServiceClient:
    """
    Base client for the mapping backend services.

    Every call goes through one requests.Session. Transport errors and
    unparseable bodies are raised as FetchFailure (or the error class a
    caller asks for), never returned as None.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60,
        debug_json: bool = False,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Service base URL, with trailing slash
            timeout: Request timeout in seconds
            debug_json: Log request and response bodies at DEBUG level
            session: Existing session to share between clients
        """
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.timeout = timeout
        self.debug_json = debug_json
        self.session = session or requests.Session()
        self.session.headers.update(JSON_HEADERS)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path.lstrip('/')}"

    def _dump(self, label: str, payload: Any) -> None:
        if self.debug_json:
            logger.debug(f"{label}:\n{json.dumps(payload, indent=2, default=str)}")

    def _request_json(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        unit: Optional[str] = None,
        error_class: Type[DataMapperError] = FetchFailure,
    ) -> Any:
        url = self._url(path)
        if payload is not None:
            self._dump(f"{method} {url} request", payload)

        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                timeout=timeout or self.timeout,
            )
            response.raise_for_status()
            body = response.json() if response.content else {}
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise self._error(error_class, f"{method} {url} failed: {e}", unit) from e
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            raise self._error(error_class, f"Invalid JSON from {url}: {e}", unit) from e

        self._dump(f"{method} {url} response", body)
        return body

    @staticmethod
    def _error(error_class: Type[DataMapperError], message: str, unit: Optional[str]) -> DataMapperError:
        if issubclass(error_class, FetchFailure):
            return error_class(message, unit=unit)
        return error_class(message)

    def get_json(self, path: str, **kwargs) -> Any:
        return self._request_json("GET", path, **kwargs)

    def post_json(self, path: str, payload: Dict[str, Any], **kwargs) -> Any:
        return self._request_json("POST", path, payload=payload, **kwargs)

    def put_json(self, path: str, payload: Dict[str, Any], **kwargs) -> Any:
        return self._request_json("PUT", path, payload=payload, **kwargs)
