"""
Client for the Custom Vision prediction API.

References:
- Custom Vision Prediction API v3.0:
  https://learn.microsoft.com/rest/api/customvision/prediction
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .base import BaseServiceClient
from .models import Prediction

logger = logging.getLogger(__name__)


class PredictionApiClient(BaseServiceClient):
    """Runs object detection against a published iteration."""

    def __init__(self, endpoint: str, prediction_key: str, api_version: str = "v3.0",
                 timeout: float = 60, session: Optional[requests.Session] = None):
        super().__init__(
            endpoint=endpoint,
            api_key=prediction_key,
            key_header="Prediction-Key",
            api_path=f"customvision/{api_version}/Prediction",
            timeout=timeout,
            session=session,
        )

    @classmethod
    def from_settings(cls, settings: Dict[str, Any],
                      session: Optional[requests.Session] = None) -> 'PredictionApiClient':
        """Build a client from ``Config.get_service_settings()``."""
        return cls(
            endpoint=settings['prediction_endpoint'],
            prediction_key=settings['prediction_key'],
            api_version=settings.get('prediction_api_version', 'v3.0'),
            timeout=settings.get('timeout', 60),
            session=session,
        )

    def detect_image(self, project_id: str, published_name: str, image_data: bytes) -> List[Prediction]:
        """
        Detect objects in an image with the published model.

        Args:
            project_id: Project id
            published_name: Name the iteration was published under
            image_data: Raw image file bytes

        Returns:
            Predictions in the order returned by the service
        """
        data = self._request_json(
            'POST',
            f'{project_id}/detect/iterations/{published_name}/image',
            data=image_data,
            headers={'Content-Type': 'application/octet-stream'},
        )
        return [Prediction.from_api(item) for item in (data or {}).get('predictions') or []]
