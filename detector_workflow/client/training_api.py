"""
Client for the Custom Vision training API.

Covers the operations the workflow needs: projects and domains, tags, image
upload, training, iterations, publishing and exports.

References:
- Custom Vision Training API v3.3:
  https://learn.microsoft.com/rest/api/customvision/training
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .base import BaseServiceClient
from .models import Domain, Export, ImageRecord, Iteration, Project, Tag, UploadSummary

logger = logging.getLogger(__name__)


class TrainingApiClient(BaseServiceClient):
    """Thin wrapper over the training endpoints of a Custom Vision resource."""

    def __init__(self, endpoint: str, training_key: str, api_version: str = "v3.3",
                 timeout: float = 60, session: Optional[requests.Session] = None):
        super().__init__(
            endpoint=endpoint,
            api_key=training_key,
            key_header="Training-Key",
            api_path=f"customvision/{api_version}/training",
            timeout=timeout,
            session=session,
        )

    @classmethod
    def from_settings(cls, settings: Dict[str, Any],
                      session: Optional[requests.Session] = None) -> 'TrainingApiClient':
        """Build a client from ``Config.get_service_settings()``."""
        return cls(
            endpoint=settings['endpoint'],
            training_key=settings['training_key'],
            api_version=settings.get('training_api_version', 'v3.3'),
            timeout=settings.get('timeout', 60),
            session=session,
        )

    # Projects

    def get_projects(self) -> List[Project]:
        return [Project.from_api(item) for item in self._request_json('GET', 'projects') or []]

    def get_domain(self, domain_id: str) -> Domain:
        return Domain.from_api(self._request_object('GET', f'domains/{domain_id}'))

    # Tags

    def get_tags(self, project_id: str) -> List[Tag]:
        return [Tag.from_api(item) for item in self._request_json('GET', f'projects/{project_id}/tags') or []]

    def create_tag(self, project_id: str, name: str) -> Tag:
        data = self._request_object('POST', f'projects/{project_id}/tags', params={'name': name})
        return Tag.from_api(data)

    # Images

    def create_images_from_files(self, project_id: str, images: List[ImageRecord]) -> UploadSummary:
        """
        Upload one batch of images with their regions.

        The service accepts at most 64 images per call; batching is the
        caller's job.
        """
        payload = {'images': [image.to_api() for image in images]}
        data = self._request_json('POST', f'projects/{project_id}/images/files', json=payload)
        return UploadSummary.from_api(data or {})

    # Training

    def train_project(self, project_id: str, training_type: Optional[str] = None,
                      reserved_budget_in_hours: Optional[int] = None,
                      force_train: bool = False) -> Iteration:
        params: Dict[str, Any] = {}
        if training_type:
            params['trainingType'] = training_type
        if reserved_budget_in_hours:
            params['reservedBudgetInHours'] = reserved_budget_in_hours
        if force_train:
            params['forceTrain'] = 'true'
        data = self._request_object('POST', f'projects/{project_id}/train', params=params or None)
        return Iteration.from_api(data)

    def get_iteration(self, project_id: str, iteration_id: str) -> Iteration:
        return Iteration.from_api(
            self._request_object('GET', f'projects/{project_id}/iterations/{iteration_id}')
        )

    def get_iterations(self, project_id: str) -> List[Iteration]:
        return [
            Iteration.from_api(item)
            for item in self._request_json('GET', f'projects/{project_id}/iterations') or []
        ]

    def publish_iteration(self, project_id: str, iteration_id: str,
                          publish_name: str, prediction_id: str) -> bool:
        data = self._request_json(
            'POST',
            f'projects/{project_id}/iterations/{iteration_id}/publish',
            params={'publishName': publish_name, 'predictionId': prediction_id},
        )
        return bool(data)

    # Exports

    def get_exports(self, project_id: str, iteration_id: str) -> List[Export]:
        return [
            Export.from_api(item)
            for item in self._request_json('GET', f'projects/{project_id}/iterations/{iteration_id}/export') or []
        ]

    def export_iteration(self, project_id: str, iteration_id: str, platform: str,
                         flavor: Optional[str] = None) -> Export:
        params = {'platform': platform}
        if flavor:
            params['flavor'] = flavor
        data = self._request_object(
            'POST', f'projects/{project_id}/iterations/{iteration_id}/export', params=params
        )
        return Export.from_api(data)
