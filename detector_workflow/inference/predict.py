"""
Predictions against the published model.

Sends every held-out test image to the prediction endpoint and prints the
detections ranked by probability. Read-only against the service.

Author: Detector Workflow Team
Date: October 2026
"""

import sys
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..client.models import Prediction
from ..client.prediction_api import PredictionApiClient
from ..console import ConsolePrompter

logger = logging.getLogger(__name__)


def rank_predictions(predictions: Sequence[Prediction]) -> List[Prediction]:
    """Predictions sorted by descending probability (stable for ties)."""
    return sorted(predictions, key=lambda p: p.probability, reverse=True)


def format_prediction(prediction: Prediction) -> str:
    """Render one detection, e.g. ``For Tag 'cat': 97.125% [0.1, 0.2, 0.3, 0.4]``."""
    line = f"For Tag '{prediction.tag_name}': {prediction.probability:.3%}"
    box = prediction.bounding_box
    if box is not None:
        line += f" [{box.left}, {box.top}, {box.width}, {box.height}]"
    return line


class PredictionRunner:
    """Runs the published model over local test images."""

    def __init__(self, client: PredictionApiClient, published_model_name: str,
                 prompter: Optional[ConsolePrompter] = None):
        self.client = client
        self.published_model_name = published_model_name
        self.prompter = prompter or ConsolePrompter()

    def predict_image(self, project_id: str, image_path: Path) -> List[Prediction]:
        """Detect objects in one image; returns ranked predictions."""
        predictions = self.client.detect_image(
            project_id, self.published_model_name, Path(image_path).read_bytes()
        )
        return rank_predictions(predictions)

    def run(self, project_id: str, image_paths: Sequence[Path]) -> Dict[str, List[Prediction]]:
        """
        Predict every test image, printing detections after each one.

        Returns:
            Ranked predictions keyed by image filename
        """
        self.prompter.write("----- Making predictions -----")
        results: Dict[str, List[Prediction]] = {}

        for image_path in image_paths:
            image_path = Path(image_path)
            self.prompter.write(f"\tImage: {image_path.name}")

            predictions = self.predict_image(project_id, image_path)
            for prediction in predictions:
                self.prompter.write(f"\t\t{format_prediction(prediction)}")

            logger.info(f"{image_path.name}: {len(predictions)} detections")
            results[image_path.name] = predictions

            self.prompter.separator()
            self.prompter.pause("Press Enter for next image...")

        if not image_paths:
            logger.warning("No test images found")

        return results


def main():
    """
    Entry point for running predictions only.

    Uses the configured project and published model name; the project must
    exist and a model must already be published.
    """
    import argparse

    parser = argparse.ArgumentParser(description='Run predictions with the published Custom Vision model')
    parser.add_argument('--config', type=str, help='Path to configuration file')
    parser.add_argument('--images', type=str, help='Folder of test images (overrides data.test_images_dir)')
    parser.add_argument('--yes', action='store_true', help='Do not pause between images')
    parser.add_argument('--verbose', action='store_true', help='Verbose logging')

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    # Imported here to avoid circular imports
    from ..config import Config
    from ..client.training_api import TrainingApiClient
    from ..data_preparation.build_dataset import DatasetBuilder
    from ..exceptions import WorkflowError
    from ..training.project_setup import ProjectResolver

    try:
        config = Config(args.config)
        if args.verbose:
            logging.getLogger().setLevel(logging.DEBUG)

        validation_results = config.validate()
        if not validation_results['valid']:
            logger.error("Configuration validation failed:")
            for error in validation_results['errors']:
                logger.error(f"  - {error}")
            sys.exit(1)

        prompter = ConsolePrompter(assume_yes=args.yes)
        settings = config.get_service_settings()

        with TrainingApiClient.from_settings(settings) as training_client, \
                PredictionApiClient.from_settings(settings) as prediction_client:
            project, _ = ProjectResolver(training_client, prompter).resolve(config.get('project.name'))

            image_paths = DatasetBuilder(config).list_test_images(Path(args.images) if args.images else None)
            runner = PredictionRunner(prediction_client, config.get('project.published_model_name'), prompter)
            runner.run(project.id, image_paths)

    except (WorkflowError, FileNotFoundError) as e:
        logger.error(f"Prediction failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
