"""
Training side of the workflow.

Implements the remote training cycle with:
- Project lookup and tag synchronization
- Batched upload of labeled images
- Training, status polling and publishing
"""

from .project_setup import ProjectResolver, TagSynchronizer, TagSyncResult
from .upload import DatasetUploader
from .train import TrainingController

__all__ = [
    "ProjectResolver",
    "TagSynchronizer",
    "TagSyncResult",
    "DatasetUploader",
    "TrainingController"
]
