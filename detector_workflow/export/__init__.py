"""
Model export to deployable formats.
"""

from .export_model import ExportController, ExportFormat

__all__ = [
    "ExportController",
    "ExportFormat"
]
