"""
Training, polling and publishing of project iterations.

Key Features:
- Triggers a training run and polls it on a fixed interval until it leaves
  the "Training" state
- Publishes the finished iteration under the configured model name
- Recovers from train/publish rejections (e.g. nothing changed since the
  last iteration) by logging them
- Falls back to the most recently modified iteration when nothing was
  trained in this run

Author: Detector Workflow Team
Date: October 2026
"""

import time
import logging
from typing import Callable, Optional

import requests

from ..client.models import Iteration
from ..client.training_api import TrainingApiClient
from ..console import ConsolePrompter
from ..exceptions import CustomVisionApiError, WorkflowError

logger = logging.getLogger(__name__)


class TrainingController:
    """
    Drives one training run of a project and publishes the result.

    Args:
        client: Training API client
        config: Configuration object (polling, training options, model name)
        prompter: Console used for status lines and confirmation gates
        sleep: Blocking sleep between polls; injectable for tests
    """

    def __init__(self, client: TrainingApiClient, config,
                 prompter: Optional[ConsolePrompter] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.config = config
        self.prompter = prompter or ConsolePrompter()
        self.sleep = sleep

        self.poll_interval = float(config.get('training.poll_interval_seconds', 1.0))
        self.published_model_name = config.get('project.published_model_name')
        self.prediction_resource_id = config.get('custom_vision.prediction_resource_id')

        logger.debug(f"Initialized TrainingController (poll_interval={self.poll_interval}s, "
                     f"model={self.published_model_name})")

    def start_training(self, project_id: str) -> Iteration:
        """Ask the service to train the project; returns the new iteration."""
        self.prompter.write("----- Starting the Training process... -----")
        iteration = self.client.train_project(
            project_id,
            training_type=self.config.get('training.training_type'),
            reserved_budget_in_hours=self.config.get('training.reserved_budget_in_hours'),
            force_train=bool(self.config.get('training.force_train', False)),
        )
        logger.info(f"Training started: iteration '{iteration.name}' ({iteration.id})")
        return iteration

    def wait_for_completion(self, project_id: str, iteration: Iteration) -> Iteration:
        """
        Poll ``iteration`` until its status is no longer "Training".

        Returns:
            The iteration in its terminal state (Completed or Failed)
        """
        while iteration.is_training:
            self.sleep(self.poll_interval)
            self.prompter.write(f"\tIteration '{iteration.name}' status: {iteration.status}")
            iteration = self.client.get_iteration(project_id, iteration.id)

        self.prompter.write(f"\tIteration '{iteration.name}' status: {iteration.status}")
        logger.info(f"Iteration '{iteration.name}' finished with status {iteration.status}")
        return iteration

    def publish(self, project_id: str, iteration: Iteration) -> bool:
        """
        Publish ``iteration`` to the prediction resource.

        Rejections by the service are logged and reported as False.
        """
        self.prompter.write("----- Starting the Publication process. -----")
        try:
            self.client.publish_iteration(
                project_id, iteration.id, self.published_model_name, self.prediction_resource_id
            )
        except (CustomVisionApiError, requests.RequestException) as e:
            logger.warning(f"Publishing iteration '{iteration.name}' failed: {e}")
            self.prompter.write("There was an exception (perhaps nothing changed since last iteration?).")
            return False

        self.prompter.write(f"\tIteration '{iteration.name}' published.")
        logger.info(f"Iteration '{iteration.name}' published as '{self.published_model_name}'")
        return True

    def train_and_publish(self, project_id: str) -> Optional[Iteration]:
        """
        Train, wait for a terminal state, then publish.

        Returns:
            The trained iteration, or None when the service refused to
            train (e.g. nothing changed since the last iteration)
        """
        try:
            iteration = self.start_training(project_id)
            iteration = self.wait_for_completion(project_id, iteration)
        except (CustomVisionApiError, requests.RequestException) as e:
            logger.warning(f"Training was not performed: {e}")
            self.prompter.write("There was an exception (perhaps nothing changed since last iteration?).")
            return None

        self.prompter.separator()
        self.prompter.pause()

        self.publish(project_id, iteration)
        self.prompter.separator()
        self.prompter.pause()
        return iteration

    def latest_iteration(self, project_id: str) -> Iteration:
        """
        Most recently modified iteration of the project.

        Raises:
            WorkflowError: If the project has never been trained
        """
        iterations = self.client.get_iterations(project_id)
        if not iterations:
            raise WorkflowError("The project has no iterations; upload images and train it first")

        iteration = max(
            iterations,
            key=lambda it: (it.last_modified is not None, it.last_modified or 0)
        )
        self.prompter.write(f"Iteration '{iteration.name}' found and loaded.")
        logger.info(f"Using existing iteration '{iteration.name}' ({iteration.id})")
        return iteration

    def resolve_iteration(self, project_id: str, train: bool) -> Iteration:
        """
        Iteration the rest of the workflow runs against.

        Args:
            project_id: Project id
            train: Whether new images were uploaded and training should run

        Returns:
            The newly trained iteration, or the latest existing one
        """
        iteration = self.train_and_publish(project_id) if train else None

        if iteration is None:
            iteration = self.latest_iteration(project_id)
            self.prompter.separator()
            self.prompter.pause()

        return iteration
