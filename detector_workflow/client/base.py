"""
Shared HTTP plumbing for the Custom Vision REST clients.

Both the training and the prediction API authenticate with a key header and
report failures as ``{"code": ..., "message": ...}`` JSON bodies. This module
owns the ``requests.Session`` and turns error responses into
``CustomVisionApiError``.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..exceptions import CustomVisionApiError

logger = logging.getLogger(__name__)


class BaseServiceClient:
    """
    Authenticated session against one Custom Vision API surface.

    Args:
        endpoint: Resource endpoint, e.g. ``https://<name>.cognitiveservices.azure.com/``
        api_key: Key sent in ``key_header`` on every request
        key_header: ``Training-Key`` or ``Prediction-Key``
        api_path: Path below the endpoint, e.g. ``customvision/v3.3/training``
        timeout: Per-request timeout in seconds
        session: Optional preconfigured session (tests pass a mock)
    """

    def __init__(self, endpoint: str, api_key: str, key_header: str, api_path: str,
                 timeout: float = 60, session: Optional[requests.Session] = None):
        if not endpoint:
            raise ValueError("Custom Vision endpoint must not be empty")
        if not api_key:
            raise ValueError(f"{key_header} must not be empty")

        self.base_url = f"{endpoint.rstrip('/')}/{api_path.strip('/')}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({key_header: api_key})

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Send a request and raise ``CustomVisionApiError`` on non-2xx responses.

        Network-level failures (``requests.RequestException``) propagate
        unchanged.
        """
        url = self._url(path)
        kwargs.setdefault('timeout', self.timeout)
        logger.debug(f"{method} {url} params={kwargs.get('params')}")

        response = self.session.request(method, url, **kwargs)
        if not response.ok:
            raise self._error_from_response(response)
        return response

    def _request_json(self, method: str, path: str, **kwargs) -> Any:
        response = self._request(method, path, **kwargs)
        if not response.content:
            return None
        return response.json()

    def _request_object(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Like ``_request_json`` for calls that must return a JSON object.

        Raises:
            CustomVisionApiError: If a 2xx response has an empty or non-object body
        """
        response = self._request(method, path, **kwargs)
        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise CustomVisionApiError(
                response.status_code, f"Expected a JSON object in the response to {method} {path}"
            )
        return data

    @staticmethod
    def _error_from_response(response: requests.Response) -> CustomVisionApiError:
        code = None
        message = response.reason or "Unknown error"
        try:
            body: Dict[str, Any] = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            # Some gateways wrap the payload in an "error" object
            error = body.get('error') if isinstance(body.get('error'), dict) else body
            code = error.get('code', code)
            message = error.get('message', message)
        return CustomVisionApiError(response.status_code, message, code)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
