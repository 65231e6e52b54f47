"""
Export of a trained iteration to a deployable model format.

Key Features:
- Interactive platform selection: configured presets, a free-form
  platform/extension pair, or end
- Reuse of an existing export for the same platform, otherwise a new export
  request, polled until it leaves the "Exporting" state
- Streamed download of finished exports through an atomic write
- Export and download errors are logged and the selection loop continues

Author: Detector Workflow Team
Date: October 2026
"""

import sys
import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from ..client.models import Export, Iteration
from ..client.training_api import TrainingApiClient
from ..console import ConsolePrompter
from ..data_preparation.utils import AtomicFileWriter, FileHasher
from ..exceptions import CustomVisionApiError

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024
END_OPTION = 'e'


@dataclass(frozen=True)
class ExportFormat:
    """Target platform and the extension of its downloaded artifact."""
    platform: str
    extension: str

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> 'ExportFormat':
        return cls(platform=str(data['platform']), extension=str(data['extension']).lstrip('.'))

    def artifact_name(self, model_name: str) -> str:
        return f"{model_name}_{self.platform}.{self.extension}"


class ExportController:
    """
    Exports an iteration to the formats the user selects.

    Args:
        client: Training API client
        config: Configuration object (presets, poll interval, export dir, model name)
        prompter: Console used for the menu and status lines
        sleep: Blocking sleep between polls; injectable for tests
        http_session: Session used for artifact downloads (no service key attached)
    """

    def __init__(self, client: TrainingApiClient, config,
                 prompter: Optional[ConsolePrompter] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 http_session: Optional[requests.Session] = None):
        self.client = client
        self.config = config
        self.prompter = prompter or ConsolePrompter()
        self.sleep = sleep
        self.http_session = http_session or requests.Session()

        self.poll_interval = float(config.get('export.poll_interval_seconds', 1.0))
        self.timeout = config.get('custom_vision.request_timeout_seconds', 60)
        self.model_name = config.get('project.published_model_name')
        self.export_dir = Path(config.get('data.export_dir'))
        self.presets = [ExportFormat.from_config(item) for item in config.get('export.presets', [])]

    def _show_menu(self) -> None:
        options = [f"{number}) {preset.platform}" for number, preset in enumerate(self.presets, start=1)]
        options.append(f"{len(self.presets) + 1}) Other platform")
        options.append("E) End program")
        self.prompter.write("\tOptions: \n\t" + " \n\t".join(options))

    def select_format(self) -> Optional[ExportFormat]:
        """
        Ask for the next export format.

        Returns:
            The selected format, or None when the user ends the loop
        """
        while True:
            self._show_menu()
            choice = self.prompter.choose("Select an option:")
            if choice is None or choice.lower() == END_OPTION:
                return None

            if choice.isdigit():
                number = int(choice)
                if 1 <= number <= len(self.presets):
                    return self.presets[number - 1]
                if number == len(self.presets) + 1:
                    platform = self.prompter.ask("\tType the platform name")
                    extension = self.prompter.ask(
                        f"\tNow type the file extension for the {platform} exported model."
                    )
                    if platform and extension:
                        return ExportFormat(platform=platform, extension=extension.lstrip('.'))
                    self.prompter.write("\tPlatform name and extension are both required.")
                    continue

            self.prompter.write("\n\tOption not supported.")

    def wait_for_export(self, project_id: str, iteration_id: str, platform: str) -> Export:
        """
        Request (or reuse) the export for ``platform`` and poll it.

        Each round lists the iteration's exports and only requests a new one
        when none exists for the platform.

        Returns:
            The export in its terminal state (Done or Failed)
        """
        while True:
            exports = self.client.get_exports(project_id, iteration_id)
            export = next((e for e in exports if e.platform == platform), None)

            if export is None:
                logger.info(f"Requesting {platform} export of iteration {iteration_id}")
                export = self.client.export_iteration(project_id, iteration_id, platform)

            self.sleep(self.poll_interval)
            self.prompter.write(f"\tStatus: {export.status}")

            if not export.is_exporting:
                return export

    def download(self, export: Export, export_format: ExportFormat) -> Path:
        """
        Stream a finished export to ``<export_dir>/<model>_<platform>.<ext>``.

        Raises:
            ValueError: If the export has no download URI
            requests.RequestException: On download failure
        """
        if not export.download_uri:
            raise ValueError(f"Export for {export.platform} has no download URI")

        file_path = self.export_dir / export_format.artifact_name(self.model_name)
        self.prompter.write(f"\tDownloading {export_format.platform} model")

        with self.http_session.get(export.download_uri, stream=True, timeout=self.timeout) as response:
            response.raise_for_status()
            with AtomicFileWriter.atomic_write(file_path, 'wb') as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)

        digest = FileHasher.generate_file_hash(file_path)
        logger.info(f"Downloaded {file_path} (sha256={digest})")
        self.prompter.write(f"\tModel successfully exported. You can find it here:\n\t{file_path}.")
        return file_path

    def export(self, project_id: str, iteration: Iteration, export_format: ExportFormat) -> Optional[Path]:
        """
        Export one format and download it when the export succeeds.

        Errors are logged and reported as None so the selection loop can go on.
        """
        self.prompter.write(f"\tExporting to {export_format.platform}...")
        try:
            export = self.wait_for_export(project_id, iteration.id, export_format.platform)
            self.prompter.write(f"Status: {export.status}")

            if not export.is_done:
                logger.warning(f"{export_format.platform} export ended with status {export.status}")
                return None

            return self.download(export, export_format)

        except (CustomVisionApiError, requests.RequestException, OSError, ValueError) as e:
            logger.error(f"Export to {export_format.platform} failed: {e}")
            self.prompter.write(f"Exception found: {e}")
            return None

        finally:
            self.prompter.separator()

    def run(self, project_id: str, iteration: Iteration) -> List[Path]:
        """
        Export formats until the user ends the loop.

        Returns:
            Paths of the downloaded artifacts
        """
        downloaded = []
        while True:
            export_format = self.select_format()
            self.prompter.separator()
            if export_format is None:
                break

            path = self.export(project_id, iteration, export_format)
            if path is not None:
                downloaded.append(path)

        return downloaded

    def close(self) -> None:
        self.http_session.close()


def main():
    """
    Entry point for exporting the latest iteration only.
    """
    import argparse

    parser = argparse.ArgumentParser(description='Export the latest Custom Vision iteration')
    parser.add_argument('--config', type=str, help='Path to configuration file')
    parser.add_argument('--yes', action='store_true', help='Non-interactive: end the export menu immediately')
    parser.add_argument('--verbose', action='store_true', help='Verbose logging')

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    # Imported here to avoid circular imports
    from ..config import Config
    from ..exceptions import WorkflowError
    from ..training.project_setup import ProjectResolver
    from ..training.train import TrainingController

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
        with TrainingApiClient.from_settings(config.get_service_settings()) as client:
            project, _ = ProjectResolver(client, prompter).resolve(config.get('project.name'))
            iteration = TrainingController(client, config, prompter).latest_iteration(project.id)

            controller = ExportController(client, config, prompter)
            try:
                controller.run(project.id, iteration)
            finally:
                controller.close()

    except WorkflowError as e:
        logger.error(f"Export failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
