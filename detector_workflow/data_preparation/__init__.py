"""
Data preparation for the Detector Workflow.

Implements local dataset handling with:
- Tag list and normalized bounding-box label parsing
- Upload batching
- Image integrity validation
- Atomic artifact writes and hashing
"""

from .utils import (
    AtomicFileWriter,
    DataIntegrityValidator,
    FileHasher,
    batched,
    parse_region_line,
    read_region_file,
    read_tag_list
)
from .build_dataset import DatasetBuilder

__all__ = [
    "AtomicFileWriter",
    "DataIntegrityValidator",
    "FileHasher",
    "batched",
    "parse_region_line",
    "read_region_file",
    "read_tag_list",
    "DatasetBuilder"
]
