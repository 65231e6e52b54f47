"""
End-to-end Custom Vision object detection workflow.

Runs the phases strictly in order, with a confirmation gate after each:

1. Resolve the configured project (fatal if missing)
2. Synchronize tags with the local label list
3. Upload labeled images (asks first if the project already has images)
4. Train, poll and publish; or load the latest iteration
5. Predict the held-out test images
6. Optionally export the model in a loop of user-selected formats

Author: Detector Workflow Team
Date: October 2026
"""

import sys
import time
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .client.models import Iteration, Prediction, Project
from .client.prediction_api import PredictionApiClient
from .client.training_api import TrainingApiClient
from .config import Config
from .console import ConsolePrompter
from .data_preparation.build_dataset import DatasetBuilder
from .exceptions import WorkflowError
from .export.export_model import ExportController
from .inference.predict import PredictionRunner
from .training.project_setup import ProjectResolver, TagSynchronizer, TagSyncResult
from .training.train import TrainingController
from .training.upload import DatasetUploader

logger = logging.getLogger(__name__)


@dataclass
class WorkflowResult:
    """What one workflow run did."""
    project: Project
    tag_sync: TagSyncResult
    uploaded_images: int = 0
    iteration: Optional[Iteration] = None
    predictions: Dict[str, List[Prediction]] = field(default_factory=dict)
    exported: List[Path] = field(default_factory=list)


class WorkflowRunner:
    """
    Sequences the workflow components against one project.

    Args:
        config: Configuration object
        training_client: Training API client
        prediction_client: Prediction API client
        prompter: Console for gates and report lines
        sleep: Blocking sleep used by the polling loops
        http_session: Session for export downloads
    """

    def __init__(self, config: Config, training_client: TrainingApiClient,
                 prediction_client: PredictionApiClient,
                 prompter: Optional[ConsolePrompter] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 http_session=None):
        self.config = config
        self.prompter = prompter or ConsolePrompter()

        self.resolver = ProjectResolver(training_client, self.prompter)
        self.tag_synchronizer = TagSynchronizer(training_client, self.prompter)
        self.dataset_builder = DatasetBuilder(config)
        self.uploader = DatasetUploader(
            training_client, config.get('upload.batch_size', 64), self.prompter
        )
        self.trainer = TrainingController(training_client, config, self.prompter, sleep=sleep)
        self.predictor = PredictionRunner(
            prediction_client, config.get('project.published_model_name'), self.prompter
        )
        self.exporter = ExportController(
            training_client, config, self.prompter, sleep=sleep, http_session=http_session
        )

    def _end_phase(self) -> None:
        self.prompter.separator()
        self.prompter.pause()

    def upload_images(self, project: Project, tag_sync: TagSyncResult, labels: List[str]) -> int:
        """
        Upload the local dataset unless the user declines.

        Returns:
            Number of images uploaded

        Raises:
            WorkflowError: If a record references a tag that was not synchronized
        """
        if tag_sync.existing_image_count > 0:
            wants_more = self.prompter.confirm(
                f"There are {tag_sync.existing_image_count} training images already uploaded. "
                f"Do you want to upload more?",
                default=False,
            )
            if not wants_more:
                logger.info("Skipping image upload")
                return 0

        self.prompter.write("----- Accessing images -----")
        records = self.dataset_builder.build_image_records(labels, tag_sync.tags_by_name)
        if not records:
            logger.warning("No images found to upload")
            return 0

        synchronized = {tag.id for tag in tag_sync.tags}
        unknown = {tag_id for record in records for tag_id in record.tag_ids} - synchronized
        if unknown:
            raise WorkflowError(f"Image regions reference unsynchronized tags: {sorted(unknown)}")

        names = {tag.id: tag.name for tag in tag_sync.tags}
        for tag_id, count in self.dataset_builder.summarize(records).items():
            self.prompter.write(f"\tTag {names[tag_id]}: {count} regions.")

        self.uploader.upload(project.id, records)
        self._end_phase()
        return len(records)

    def predict(self, project: Project) -> Dict[str, List[Prediction]]:
        try:
            image_paths = self.dataset_builder.list_test_images()
        except FileNotFoundError as e:
            logger.warning(f"Skipping predictions: {e}")
            return {}
        return self.predictor.run(project.id, image_paths)

    def run(self) -> WorkflowResult:
        """
        Run every phase in order.

        Raises:
            ProjectNotFoundError: If the configured project does not exist
            WorkflowError: If no iteration is available to predict with
        """
        try:
            result = self._run_phases()
        finally:
            self.close()

        self.prompter.pause("Press Enter to exit the program!")
        return result

    def close(self) -> None:
        """Release the download session of the exporter."""
        self.exporter.close()

    def _run_phases(self) -> WorkflowResult:
        project, _ = self.resolver.resolve(self.config.get('project.name'))
        self._end_phase()

        labels = self.dataset_builder.load_labels()
        tag_sync = self.tag_synchronizer.synchronize(project.id, labels)
        self._end_phase()

        result = WorkflowResult(project=project, tag_sync=tag_sync)
        result.uploaded_images = self.upload_images(project, tag_sync, labels)

        result.iteration = self.trainer.resolve_iteration(project.id, train=result.uploaded_images > 0)

        result.predictions = self.predict(project)
        self.prompter.separator()

        if self.prompter.confirm("----- Do you want to export the model? -----", default=False):
            result.exported = self.exporter.run(project.id, result.iteration)

        return result


def main():
    """
    Main entry point for the full workflow.
    """
    import argparse

    parser = argparse.ArgumentParser(description='Upload, train, publish, predict and export a Custom Vision detector')
    parser.add_argument('--config', type=str, help='Path to configuration file')
    parser.add_argument('--yes', action='store_true',
                        help='Run non-interactively: continue at every gate, skip extra uploads and export')
    parser.add_argument('--verbose', action='store_true', help='Verbose logging')

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        config = Config(args.config)
        if args.verbose:
            logging.getLogger().setLevel(logging.DEBUG)

        validation_results = config.validate()
        if not validation_results['valid']:
            logger.error("You need to set the endpoint, key and resource id. The program will end.")
            for error in validation_results['errors']:
                logger.error(f"  - {error}")
            sys.exit(1)
        for warning in validation_results['warnings']:
            logger.warning(warning)

        settings = config.get_service_settings()
        prompter = ConsolePrompter(assume_yes=args.yes)

        with TrainingApiClient.from_settings(settings) as training_client, \
                PredictionApiClient.from_settings(settings) as prediction_client:
            runner = WorkflowRunner(config, training_client, prediction_client, prompter)
            result = runner.run()

        logger.info("Workflow completed")
        logger.info(f"Iteration: {result.iteration.name if result.iteration else 'none'}")
        logger.info(f"Images uploaded: {result.uploaded_images}")
        logger.info(f"Exported artifacts: {[str(p) for p in result.exported]}")

    except WorkflowError as e:
        logger.error(f"Workflow stopped: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
