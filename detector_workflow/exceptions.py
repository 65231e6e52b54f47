"""
Exception hierarchy for the detector workflow.

Fatal errors (configuration, missing project) terminate the workflow.
Service errors are raised by the API clients and are only recovered where
the workflow explicitly catches them (training/publish and export).
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all workflow errors."""


class ConfigurationError(WorkflowError):
    """Raised when required configuration is missing or invalid."""


class ProjectNotFoundError(WorkflowError):
    """Raised when the named project does not exist on the service."""

    def __init__(self, project_name: str):
        self.project_name = project_name
        super().__init__(f"Project '{project_name}' was not found in your subscription")


class CustomVisionApiError(WorkflowError):
    """
    HTTP error returned by the Custom Vision service.

    The service reports failures as ``{"code": "...", "message": "..."}``;
    both fields are kept so callers can log the service's own explanation
    (e.g. ``BadRequestTrainingNotNeeded`` when nothing changed since the
    last iteration).
    """

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        detail = f"{code}: {message}" if code else message
        super().__init__(f"Custom Vision request failed ({status_code}) - {detail}")
