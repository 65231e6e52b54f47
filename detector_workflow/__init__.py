"""
Custom Vision Detector Workflow

Orchestrates an end-to-end object-detection workflow against the Azure Custom
Vision service: project lookup, tag synchronization, labeled image upload,
training, publishing, prediction and model export.

References:
- Azure Custom Vision documentation:
  https://learn.microsoft.com/azure/ai-services/custom-vision-service/
"""

__version__ = "1.0.0"
__author__ = "Detector Workflow Team"
__email__ = "contact@example.com"

# Core modules
from . import config
from . import client
from . import console
from . import data_preparation
from . import training
from . import inference
from . import export

__all__ = [
    "config",
    "client",
    "console",
    "data_preparation",
    "training",
    "inference",
    "export"
]
