"""
Local dataset loading for the Detector Workflow.

Reads the dataset layout the workflow uploads from::

    <dataset_root>/
        tags.txt                      one label per line
        <label>/                      images of that label
            image_001.jpg
            normalizedLabel/
                image_001.txt         "left top width height" per line

and turns it into ``ImageRecord`` upload entries whose regions reference
already synchronized tags.

Author: Detector Workflow Team
Date: October 2026
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from tqdm import tqdm

from ..client.models import ImageRecord, Region, Tag
from .utils import DataIntegrityValidator, iter_files, read_region_file, read_tag_list

logger = logging.getLogger(__name__)


class DatasetBuilder:
    """
    Builds upload entries from the local labeled dataset.

    Every region of a built record points at the synchronized tag of the
    folder the image lives in, so records can only be built for labels that
    already have a remote tag.
    """

    def __init__(self, config, validator: Optional[DataIntegrityValidator] = None):
        """
        Initialize dataset builder with configuration.

        Args:
            config: Configuration object with data paths and parameters
            validator: Image validator; built from config when omitted
        """
        self.config = config
        self.data_paths = config.get_data_paths()
        self.labels_subdir = config.get('data.labels_subdir', 'normalizedLabel')
        self.label_extension = config.get('data.label_extension', '.txt')
        self.validate_images = config.get('data.validate_images', True)
        self.validator = validator or DataIntegrityValidator(config)

        logger.debug(f"Initialized DatasetBuilder for {self.data_paths['dataset_root']}")

    def load_labels(self) -> List[str]:
        """
        Load the ordered label list from the dataset's tag file.

        Raises:
            FileNotFoundError: If the tag list does not exist
        """
        labels = read_tag_list(self.data_paths['tags_file'])
        logger.info(f"Loaded {len(labels)} labels from {self.data_paths['tags_file']}")
        return labels

    def label_directory(self, label: str) -> Path:
        return self.data_paths['dataset_root'] / label

    def label_file_for(self, image_path: Path) -> Path:
        """Path of the normalized bounding-box file belonging to an image."""
        return image_path.parent / self.labels_subdir / f"{image_path.stem}{self.label_extension}"

    def find_label_images(self, label: str) -> List[Path]:
        """
        List the image files of one label folder, sorted by name.

        Raises:
            FileNotFoundError: If the label folder does not exist
        """
        directory = self.label_directory(label)
        if not directory.is_dir():
            raise FileNotFoundError(f"Image folder for label '{label}' not found: {directory}")

        images = []
        for path in iter_files(directory):
            if not self.validator.is_image_candidate(path):
                logger.debug(f"Skipping non-image file {path}")
                continue
            if self.validate_images:
                result = self.validator.validate_image_file(path)
                if not result['valid']:
                    logger.warning(f"Invalid image skipped: {path} - {result['errors']}")
                    continue
            images.append(path)

        return images

    def build_image_record(self, image_path: Path, tag: Tag) -> ImageRecord:
        """
        Build the upload entry for one image.

        Raises:
            FileNotFoundError: If the image has no label file
            ValueError: If the label file is malformed
        """
        boxes = read_region_file(self.label_file_for(image_path))
        regions = [
            Region(tag_id=tag.id, left=left, top=top, width=width, height=height)
            for left, top, width, height in boxes
        ]
        return ImageRecord(name=image_path.name, contents=image_path.read_bytes(), regions=regions)

    def build_image_records(self, labels: Sequence[str],
                            tags_by_name: Mapping[str, Tag]) -> List[ImageRecord]:
        """
        Build upload entries for every image of every label.

        Args:
            labels: Labels in tag-list order
            tags_by_name: Synchronized remote tags keyed by label

        Returns:
            Records in label order, then filename order

        Raises:
            KeyError: If a label has no synchronized tag
        """
        records: List[ImageRecord] = []

        for label in labels:
            if label not in tags_by_name:
                raise KeyError(f"Label '{label}' has no synchronized tag")
            tag = tags_by_name[label]

            image_paths = self.find_label_images(label)
            for image_path in tqdm(image_paths, desc=f"Reading {label}", unit="img"):
                record = self.build_image_record(image_path, tag)
                logger.info(f"Adding image {image_path.stem} with {len(record.regions)} regions")
                records.append(record)

        logger.info(f"Prepared {len(records)} images for upload")
        return records

    def summarize(self, records: Sequence[ImageRecord]) -> Dict[str, int]:
        """Region counts per tag id, for reporting."""
        counts: Dict[str, int] = {}
        for record in records:
            for region in record.regions:
                counts[region.tag_id] = counts.get(region.tag_id, 0) + 1
        return counts

    def list_test_images(self, directory: Optional[Path] = None) -> List[Path]:
        """
        List the held-out test images, sorted by name.

        Raises:
            FileNotFoundError: If the test folder does not exist
        """
        directory = Path(directory) if directory else self.data_paths['test_images']
        if not directory.is_dir():
            raise FileNotFoundError(f"Test image folder not found: {directory}")

        return [path for path in iter_files(directory) if self.validator.is_image_candidate(path)]
