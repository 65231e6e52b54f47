"""
Workflow tests: every phase run in order against the in-memory service fakes.
"""

from unittest.mock import MagicMock

import pytest
import yaml

from detector_workflow import pipeline
from detector_workflow.client.models import ImageRecord, Iteration, Region, Tag
from detector_workflow.client.prediction_api import PredictionApiClient
from detector_workflow.client.training_api import TrainingApiClient
from detector_workflow.config import Config
from detector_workflow.exceptions import CustomVisionApiError, ProjectNotFoundError, WorkflowError
from detector_workflow.pipeline import WorkflowRunner


@pytest.fixture
def config(config_file):
    return Config(config_file, environ={})


@pytest.fixture
def http_session():
    response = MagicMock()
    response.iter_content.return_value = [b'exported-model']
    session = MagicMock()
    session.get.return_value.__enter__.return_value = response
    return session


@pytest.fixture
def runner_factory(config, fake_training_api, fake_prediction_api, no_sleep, http_session):
    def factory(prompter):
        return WorkflowRunner(config, fake_training_api, fake_prediction_api, prompter,
                              sleep=no_sleep, http_session=http_session)
    return factory


class TestWorkflowRunner:

    @pytest.mark.integration
    def test_fresh_project_workflow(self, runner_factory, prompter_factory, fake_training_api,
                                    fake_prediction_api, sample_dataset):
        prompter = prompter_factory(['n'])

        result = runner_factory(prompter).run()

        assert [c for c in fake_training_api.calls if c.startswith('create_tag')] == [
            'create_tag:cat', 'create_tag:dog'
        ]
        assert result.uploaded_images == sample_dataset['image_count']
        assert len(fake_training_api.uploaded_batches) == 1
        assert sum(len(r.regions) for r in fake_training_api.uploaded_batches[0]) == sample_dataset['region_count']
        assert result.iteration.status == 'Completed'
        assert fake_training_api.published == [(
            result.iteration.id, 'OpenImagesDetectorModel',
            '/subscriptions/0000/resourceGroups/rg/providers/Microsoft.CognitiveServices/accounts/prediction',
        )]
        assert sorted(result.predictions) == ['test_a.png', 'test_b.png']
        assert len(fake_prediction_api.requests) == 2
        assert result.exported == []
        assert prompter.lines[-1] == "[pause] Press Enter to exit the program!"

    @pytest.mark.integration
    def test_phases_run_in_order(self, runner_factory, prompter_factory, fake_training_api):
        runner_factory(prompter_factory(['n'])).run()

        calls = fake_training_api.calls
        order = [calls.index(name) for name in
                 ('get_projects', 'get_tags', 'create_images_from_files', 'train_project', 'publish_iteration')]
        assert order == sorted(order)

    @pytest.mark.integration
    def test_workflow_with_export(self, runner_factory, prompter_factory, sample_dataset):
        prompter = prompter_factory(['y', '2', 'e'])

        result = runner_factory(prompter).run()

        expected = sample_dataset['export_dir'] / 'OpenImagesDetectorModel_CoreML.mlmodel'
        assert result.exported == [expected]
        assert expected.read_bytes() == b'exported-model'

    @pytest.mark.integration
    def test_existing_images_and_declined_upload(self, runner_factory, prompter_factory, fake_training_api):
        fake_training_api.tags = {
            'cat': Tag(id='tag-cat', name='cat', image_count=12),
            'dog': Tag(id='tag-dog', name='dog', image_count=8),
        }
        fake_training_api.iterations = [Iteration(id='iter-old', name='Iteration 4', status='Completed')]
        prompter = prompter_factory(['n', 'n'])

        result = runner_factory(prompter).run()

        assert "There are 20 training images already uploaded" in prompter.questions[0]
        assert 'create_images_from_files' not in fake_training_api.calls
        assert 'train_project' not in fake_training_api.calls
        assert result.uploaded_images == 0
        assert result.iteration.id == 'iter-old'
        assert "Iteration 'Iteration 4' found and loaded." in prompter.lines

    @pytest.mark.integration
    def test_non_interactive_workflow(self, runner_factory, prompter_factory, fake_training_api):
        result = runner_factory(prompter_factory(assume_yes=True)).run()

        assert result.uploaded_images == 5
        assert 'train_project' in fake_training_api.calls
        assert result.exported == []
        assert not any(c.startswith('export_iteration') for c in fake_training_api.calls)

    @pytest.mark.integration
    def test_missing_project_stops_workflow(self, runner_factory, prompter_factory, fake_training_api):
        fake_training_api.projects = []

        with pytest.raises(ProjectNotFoundError):
            runner_factory(prompter_factory()).run()

        assert fake_training_api.calls == ['get_projects']

    @pytest.mark.integration
    def test_missing_test_folder_skips_predictions(self, config, runner_factory, prompter_factory,
                                                   fake_prediction_api, temp_directory):
        config.set('data.test_images_dir', str(temp_directory / 'missing'))

        result = runner_factory(prompter_factory(['n'])).run()

        assert result.predictions == {}
        assert fake_prediction_api.requests == []

    @pytest.mark.integration
    def test_region_counts_reported_per_tag(self, runner_factory, prompter_factory):
        prompter = prompter_factory(['n'])

        runner_factory(prompter).run()

        assert "\tTag cat: 4 regions." in prompter.lines
        assert "\tTag dog: 2 regions." in prompter.lines

    @pytest.mark.integration
    def test_records_with_unsynchronized_tags_are_not_uploaded(self, runner_factory, prompter_factory,
                                                               fake_training_api, http_session):
        runner = runner_factory(prompter_factory())
        stray = ImageRecord(name='cat_001.png', contents=b'x',
                            regions=[Region(tag_id='tag-deleted', left=0.1, top=0.1, width=0.2, height=0.2)])
        runner.dataset_builder.build_image_records = lambda labels, tags_by_name: [stray]

        with pytest.raises(WorkflowError, match='tag-deleted'):
            runner.run()

        assert fake_training_api.uploaded_batches == []
        http_session.close.assert_called_once()

    @pytest.mark.integration
    def test_download_session_closed_after_run(self, runner_factory, prompter_factory, http_session):
        runner_factory(prompter_factory(['n'])).run()

        http_session.close.assert_called_once()

    @pytest.mark.integration
    def test_download_session_closed_when_project_missing(self, runner_factory, prompter_factory,
                                                          fake_training_api, http_session):
        fake_training_api.projects = []

        with pytest.raises(ProjectNotFoundError):
            runner_factory(prompter_factory()).run()

        http_session.close.assert_called_once()

    @pytest.mark.integration
    def test_download_session_closed_when_upload_fails(self, runner_factory, prompter_factory,
                                                       fake_training_api, http_session):
        fake_training_api.upload_error_on_batch = 0

        with pytest.raises(CustomVisionApiError):
            runner_factory(prompter_factory()).run()

        http_session.close.assert_called_once()


class TestMain:

    @pytest.mark.unit
    def test_invalid_configuration_exits(self, temp_directory, clean_environment):
        clean_environment.setattr('sys.argv', ['detector-workflow', '--config', str(temp_directory / 'empty.yaml')])

        with pytest.raises(SystemExit) as exc_info:
            pipeline.main()

        assert exc_info.value.code == 1

    @pytest.mark.integration
    def test_non_interactive_run(self, temp_directory, test_config, clean_environment,
                                 fake_training_api, fake_prediction_api):
        test_config['training']['poll_interval_seconds'] = 0.01
        config_file = temp_directory / 'fast.yaml'
        config_file.write_text(yaml.safe_dump(test_config), encoding='utf-8')
        clean_environment.setattr(TrainingApiClient, 'from_settings', lambda settings: fake_training_api)
        clean_environment.setattr(PredictionApiClient, 'from_settings', lambda settings: fake_prediction_api)
        clean_environment.setattr('sys.argv', ['detector-workflow', '--config', str(config_file), '--yes'])

        pipeline.main()

        assert 'publish_iteration' in fake_training_api.calls
        assert len(fake_prediction_api.requests) == 2

    @pytest.mark.unit
    def test_missing_project_exits(self, config_file, clean_environment, fake_training_api, fake_prediction_api):
        fake_training_api.projects = []
        clean_environment.setattr(TrainingApiClient, 'from_settings', lambda settings: fake_training_api)
        clean_environment.setattr(PredictionApiClient, 'from_settings', lambda settings: fake_prediction_api)
        clean_environment.setattr('sys.argv', ['detector-workflow', '--config', str(config_file), '--yes'])

        with pytest.raises(SystemExit) as exc_info:
            pipeline.main()

        assert exc_info.value.code == 1
