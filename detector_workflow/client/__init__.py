"""
Custom Vision REST clients and entity models.
"""

from .models import (
    Domain,
    Project,
    Tag,
    Region,
    ImageRecord,
    UploadSummary,
    Iteration,
    Export,
    Prediction,
    BoundingBox,
)
from .training_api import TrainingApiClient
from .prediction_api import PredictionApiClient

__all__ = [
    "Domain",
    "Project",
    "Tag",
    "Region",
    "ImageRecord",
    "UploadSummary",
    "Iteration",
    "Export",
    "Prediction",
    "BoundingBox",
    "TrainingApiClient",
    "PredictionApiClient"
]
