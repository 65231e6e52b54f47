"""
Configuration management for the Detector Workflow.

Provides centralized configuration handling with support for:
- Custom Vision credentials (file or environment)
- Local dataset and export locations
- Upload batching and polling intervals
"""

from .config import Config, MAX_UPLOAD_BATCH_SIZE

__all__ = ["Config", "MAX_UPLOAD_BATCH_SIZE"]
