"""
Batched upload of labeled training images.
"""

import logging
from typing import List, Optional, Sequence

from tqdm import tqdm

from ..client.models import ImageRecord, UploadSummary
from ..client.training_api import TrainingApiClient
from ..config import MAX_UPLOAD_BATCH_SIZE
from ..console import ConsolePrompter
from ..data_preparation.utils import batched

logger = logging.getLogger(__name__)


class DatasetUploader:
    """
    Uploads image records in fixed-size batches.

    A failing batch raises and the remaining batches are not sent; batches
    already accepted by the service stay uploaded.
    """

    def __init__(self, client: TrainingApiClient, batch_size: int = MAX_UPLOAD_BATCH_SIZE,
                 prompter: Optional[ConsolePrompter] = None):
        if not 1 <= batch_size <= MAX_UPLOAD_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_UPLOAD_BATCH_SIZE}, got {batch_size}")
        self.client = client
        self.batch_size = batch_size
        self.prompter = prompter or ConsolePrompter()

    def plan_batches(self, records: Sequence[ImageRecord]) -> List[List[ImageRecord]]:
        """Split records into ceil(N / batch_size) batches, remainder last."""
        return list(batched(records, self.batch_size))

    def upload(self, project_id: str, records: Sequence[ImageRecord]) -> List[UploadSummary]:
        """
        Upload every record.

        Args:
            project_id: Project id
            records: Upload entries whose regions reference synchronized tags

        Returns:
            One service summary per batch
        """
        batches = self.plan_batches(records)
        logger.info(f"Uploading {len(records)} images in {len(batches)} batches of up to {self.batch_size}")

        summaries = []
        for number, batch in enumerate(tqdm(batches, desc="Uploading batches", unit="batch")):
            if len(batch) == self.batch_size:
                self.prompter.write(f"\tUploading images batch #{number}.")
            else:
                self.prompter.write("\tUploading last batch.")

            summary = self.client.create_images_from_files(project_id, batch)
            for failure in summary.failures:
                logger.warning(f"Image {failure.source or '<unnamed>'} not accepted: {failure.status}")
            summaries.append(summary)

        return summaries
