"""
Pytest configuration and fixtures for Detector Workflow tests.

The Custom Vision service is replaced by in-memory fakes that keep the same
method surface as the real clients, so every workflow component can run
without network access.

Author: Detector Workflow Team
Date: October 2026
"""

import pytest
import tempfile
import shutil
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List

import yaml
from PIL import Image

from detector_workflow.client.models import (
    Domain,
    Export,
    Iteration,
    Prediction,
    BoundingBox,
    Project,
    Tag,
    UploadSummary,
    ImageUploadResult,
)
from detector_workflow.config.config import ENVIRONMENT_OVERRIDES
from detector_workflow.console import ConsolePrompter
from detector_workflow.exceptions import CustomVisionApiError

# Disable logging during tests unless explicitly needed
logging.getLogger().setLevel(logging.WARNING)


@pytest.fixture
def temp_directory():
    """
    Create temporary directory for tests with automatic cleanup.

    Yields:
        Path: Temporary directory path that will be cleaned up after test
    """
    temp_dir = tempfile.mkdtemp(prefix='detector_workflow_test_')
    yield Path(temp_dir)

    shutil.rmtree(temp_dir, ignore_errors=True)


def _write_image(path: Path, color) -> None:
    Image.new('RGB', (64, 48), color=color).save(path)


@pytest.fixture
def sample_dataset(temp_directory):
    """
    Create a labeled dataset in the layout the uploader reads.

    Two labels: ``cat`` with 3 images (one of them with two boxes) and
    ``dog`` with 2 images, plus two held-out test images.

    Returns:
        Dictionary with the dataset paths and expected counts
    """
    dataset_root = temp_directory / "dataset"
    dataset_root.mkdir()
    (dataset_root / "tags.txt").write_text("cat\ndog\n", encoding="utf-8")

    boxes = {
        'cat': {
            'cat_001': ["0.1 0.2 0.3 0.4"],
            'cat_002': ["0.0 0.0 0.5 0.5", "0.5 0.5 0.25 0.25"],
            'cat_003': ["0.2 0.2 0.6 0.6"],
        },
        'dog': {
            'dog_001': ["0.3 0.1 0.4 0.8"],
            'dog_002': ["0.05 0.15 0.9 0.7"],
        },
    }

    for label, images in boxes.items():
        label_dir = dataset_root / label
        labels_dir = label_dir / "normalizedLabel"
        labels_dir.mkdir(parents=True)
        for stem, lines in images.items():
            _write_image(label_dir / f"{stem}.png", 'red' if label == 'cat' else 'blue')
            (labels_dir / f"{stem}.txt").write_text("\n".join(lines) + "\n", encoding="utf-8")

    test_dir = temp_directory / "test_images"
    test_dir.mkdir()
    _write_image(test_dir / "test_a.png", 'green')
    _write_image(test_dir / "test_b.png", 'yellow')
    (test_dir / "notes.md").write_text("not an image", encoding="utf-8")

    return {
        'dataset_root': dataset_root,
        'test_images': test_dir,
        'export_dir': temp_directory / "exports",
        'labels': ['cat', 'dog'],
        'image_count': 5,
        'region_count': 6,
    }


@pytest.fixture
def test_config(sample_dataset):
    """Configuration dictionary pointing at the sample dataset."""
    return {
        'project': {
            'name': 'Open Images Detector',
            'published_model_name': 'OpenImagesDetectorModel',
        },
        'custom_vision': {
            'endpoint': 'https://example.cognitiveservices.azure.com/',
            'training_key': 'training-key',
            'prediction_key': 'prediction-key',
            'prediction_resource_id': '/subscriptions/0000/resourceGroups/rg/providers/'
                                      'Microsoft.CognitiveServices/accounts/prediction',
            'request_timeout_seconds': 5,
        },
        'data': {
            'dataset_root': str(sample_dataset['dataset_root']),
            'tags_file': 'tags.txt',
            'labels_subdir': 'normalizedLabel',
            'label_extension': '.txt',
            'test_images_dir': str(sample_dataset['test_images']),
            'export_dir': str(sample_dataset['export_dir']),
            'image_extensions': ['.jpg', '.jpeg', '.png'],
            'validate_images': True,
        },
        'upload': {'batch_size': 64},
        'training': {'poll_interval_seconds': 1.0},
        'export': {
            'poll_interval_seconds': 1.0,
            'presets': [
                {'platform': 'TensorFlow', 'extension': 'zip'},
                {'platform': 'CoreML', 'extension': 'mlmodel'},
            ],
        },
        'logging': {'level': 'WARNING'},
    }


@pytest.fixture
def config_file(temp_directory, test_config):
    """``test_config`` written to a YAML file."""
    path = temp_directory / "config.yaml"
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(test_config, f)
    return path


@pytest.fixture
def clean_environment(monkeypatch):
    """Remove credential overrides so only the config file is read."""
    for name in ENVIRONMENT_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def mock_config_class():
    """
    Provide a mock configuration class for testing.

    Offers the dot-notation ``get`` and ``get_data_paths`` of the real
    ``Config`` without touching files or the environment.
    """
    class MockConfig:
        def __init__(self, config_dict=None):
            self.config = config_dict or {}

        def get(self, key, default=None):
            keys = key.split('.')
            value = self.config
            for k in keys:
                if isinstance(value, dict) and k in value:
                    value = value[k]
                else:
                    return default
            return value

        def get_data_paths(self):
            dataset_root = Path(self.get('data.dataset_root', '/test/dataset'))
            return {
                'dataset_root': dataset_root,
                'tags_file': dataset_root / self.get('data.tags_file', 'tags.txt'),
                'test_images': Path(self.get('data.test_images_dir', '/test/images')),
                'exports': Path(self.get('data.export_dir', '/test/exports')),
            }

        def validate(self):
            return {'valid': True, 'errors': [], 'warnings': []}

    return MockConfig


@pytest.fixture
def mock_config(mock_config_class, test_config):
    return mock_config_class(test_config)


class FakeTrainingApi:
    """
    In-memory stand-in for ``TrainingApiClient``.

    Iterations train for ``training_polls`` status queries before reaching
    ``final_status``; exports stay "Exporting" for ``export_polls`` listings.
    Every call is recorded in ``calls``.
    """

    def __init__(self, projects=None, tags=None, iterations=None, training_polls=2,
                 final_status="Completed", export_polls=1, export_status="Done"):
        self.projects: List[Project] = projects if projects is not None else [
            Project(id='proj-1', name='Open Images Detector', domain_id='dom-1')
        ]
        self.domains = {'dom-1': Domain(id='dom-1', name='General', type='ObjectDetection')}
        self.tags: Dict[str, Tag] = {tag.name: tag for tag in (tags or [])}
        self.iterations: List[Iteration] = list(iterations or [])
        self.training_polls = training_polls
        self.final_status = final_status
        self.export_polls = export_polls
        self.export_status = export_status
        self.exports: Dict[str, dict] = {}
        self.uploaded_batches: List[list] = []
        self.published: List[tuple] = []
        self.export_requests: List[tuple] = []
        self.calls: List[str] = []
        self.train_error = None
        self.publish_error = None
        self.upload_error_on_batch = None
        self.export_error = None
        self._polls_left = {}

    def get_projects(self):
        self.calls.append('get_projects')
        return list(self.projects)

    def get_domain(self, domain_id):
        self.calls.append('get_domain')
        return self.domains[domain_id]

    def get_tags(self, project_id):
        self.calls.append('get_tags')
        return list(self.tags.values())

    def create_tag(self, project_id, name):
        self.calls.append(f'create_tag:{name}')
        tag = Tag(id=f'tag-{len(self.tags) + 1}', name=name, image_count=0)
        self.tags[name] = tag
        return tag

    def create_images_from_files(self, project_id, images):
        self.calls.append('create_images_from_files')
        if self.upload_error_on_batch is not None and len(self.uploaded_batches) == self.upload_error_on_batch:
            raise CustomVisionApiError(400, "Batch rejected", "BadRequestImageBatch")
        self.uploaded_batches.append(list(images))
        return UploadSummary(
            is_batch_successful=True,
            images=[ImageUploadResult(source=image.name, status='OK') for image in images],
        )

    def train_project(self, project_id, training_type=None, reserved_budget_in_hours=None, force_train=False):
        self.calls.append('train_project')
        if self.train_error is not None:
            raise self.train_error
        iteration = Iteration(
            id=f'iter-{len(self.iterations) + 1}',
            name=f'Iteration {len(self.iterations) + 1}',
            status='Training',
            last_modified=datetime(2026, 10, 19, tzinfo=timezone.utc) + timedelta(hours=len(self.iterations)),
        )
        self.iterations.append(iteration)
        self._polls_left[iteration.id] = self.training_polls
        return iteration

    def get_iteration(self, project_id, iteration_id):
        self.calls.append('get_iteration')
        index, iteration = next((i, it) for i, it in enumerate(self.iterations) if it.id == iteration_id)
        remaining = self._polls_left.get(iteration_id, 0) - 1
        self._polls_left[iteration_id] = remaining
        if remaining <= 0 and iteration.status == 'Training':
            iteration = Iteration(id=iteration.id, name=iteration.name, status=self.final_status,
                                  last_modified=iteration.last_modified)
            self.iterations[index] = iteration
        return iteration

    def get_iterations(self, project_id):
        self.calls.append('get_iterations')
        return list(self.iterations)

    def publish_iteration(self, project_id, iteration_id, publish_name, prediction_id):
        self.calls.append('publish_iteration')
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((iteration_id, publish_name, prediction_id))
        return True

    def get_exports(self, project_id, iteration_id):
        self.calls.append('get_exports')
        exports = []
        for platform, state in self.exports.items():
            if state['polls_left'] > 0:
                state['polls_left'] -= 1
                status = 'Exporting'
            else:
                status = self.export_status
            exports.append(Export(
                platform=platform,
                status=status,
                download_uri=f'https://download.example.com/{platform}.bin' if status == 'Done' else None,
            ))
        return exports

    def export_iteration(self, project_id, iteration_id, platform, flavor=None):
        self.calls.append(f'export_iteration:{platform}')
        if self.export_error is not None:
            raise self.export_error
        self.export_requests.append((iteration_id, platform))
        self.exports[platform] = {'polls_left': self.export_polls}
        return Export(platform=platform, status='Exporting')

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class FakePredictionApi:
    """In-memory stand-in for ``PredictionApiClient``."""

    def __init__(self, predictions=None):
        self.predictions = predictions if predictions is not None else [
            Prediction(tag_id='tag-1', tag_name='cat', probability=0.42,
                       bounding_box=BoundingBox(0.1, 0.1, 0.2, 0.2)),
            Prediction(tag_id='tag-2', tag_name='dog', probability=0.97,
                       bounding_box=BoundingBox(0.3, 0.4, 0.5, 0.5)),
            Prediction(tag_id='tag-1', tag_name='cat', probability=0.05,
                       bounding_box=BoundingBox(0.0, 0.0, 1.0, 1.0)),
        ]
        self.requests = []

    def detect_image(self, project_id, published_name, image_data):
        self.requests.append((project_id, published_name, len(image_data)))
        return list(self.predictions)

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


@pytest.fixture
def fake_training_api():
    return FakeTrainingApi()


@pytest.fixture
def fake_prediction_api():
    return FakePredictionApi()


class ScriptedPrompter(ConsolePrompter):
    """Console prompter answering from a script; pauses consume nothing."""

    def __init__(self, answers=None, assume_yes=False):
        self.answers = list(answers or [])
        self.questions = []
        self.lines = []
        super().__init__(input_func=self._next_answer, assume_yes=assume_yes)

    def _next_answer(self, prompt):
        self.questions.append(prompt)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {prompt!r}")
        return self.answers.pop(0)

    def pause(self, message="Press Enter to continue..."):
        self.lines.append(f"[pause] {message}")

    def write(self, message=""):
        self.lines.append(message)

    @property
    def output(self):
        return "\n".join(self.lines)


@pytest.fixture
def prompter_factory():
    return ScriptedPrompter


@pytest.fixture
def no_sleep():
    """Records requested sleeps instead of blocking."""
    sleeps = []
    sleeps_append = sleeps.append

    def sleep(seconds):
        sleeps_append(seconds)

    sleep.calls = sleeps
    return sleep


# Pytest markers for categorizing tests
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# Custom test collection modifications
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add automatic markers."""
    for item in items:
        if "integration" in item.name or "workflow" in item.name:
            item.add_marker(pytest.mark.integration)
