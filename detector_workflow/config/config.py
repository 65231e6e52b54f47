"""
Centralized configuration management for the Detector Workflow.

Configuration is layered: built-in defaults, then the YAML configuration file,
then environment variables for the service credentials. Credentials are never
written back to disk from the environment.

Key Features:
- YAML configuration with deep merge over defaults
- Dot-notation access (``config.get('upload.batch_size')``)
- Environment overrides for endpoint, keys and prediction resource id
- Validation of the settings the workflow cannot run without

Author: Detector Workflow Team
Date: October 2026
"""

import os
import copy
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union

logger = logging.getLogger(__name__)

# Environment variable -> configuration key
ENVIRONMENT_OVERRIDES = {
    'CUSTOM_VISION_ENDPOINT': 'custom_vision.endpoint',
    'CUSTOM_VISION_TRAINING_KEY': 'custom_vision.training_key',
    'CUSTOM_VISION_PREDICTION_KEY': 'custom_vision.prediction_key',
    'CUSTOM_VISION_PREDICTION_ENDPOINT': 'custom_vision.prediction_endpoint',
    'CUSTOM_VISION_PREDICTION_RESOURCE_ID': 'custom_vision.prediction_resource_id',
}

# Service limit for images per upload batch
MAX_UPLOAD_BATCH_SIZE = 64


class Config:
    """
    Centralized configuration management for the Detector Workflow.

    Manages every parameter of the workflow:

    - Custom Vision credentials and API versions
    - Project and published model names
    - Local dataset, test image and export locations
    - Upload batching and polling intervals
    - Logging
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None,
                 environ: Optional[Dict[str, str]] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to custom configuration file.
                        If None, uses default config.yaml in project root.
            environ: Environment mapping used for credential overrides.
                     Defaults to ``os.environ``.
        """
        self.project_root = Path(__file__).parent.parent.parent
        self.config_path = Path(config_path) if config_path else self.project_root / "config.yaml"
        self.environ = os.environ if environ is None else environ
        self.config = self._load_config()
        self._apply_environment_overrides()

        # Set up logging after config is loaded
        self._setup_logging()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from YAML file over the built-in defaults.

        Returns:
            Dictionary containing all configuration parameters
        """
        default_config = self._get_default_config()

        # Load from file if exists, otherwise use defaults
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    file_config = yaml.safe_load(f) or {}

                # Deep merge configurations (file overrides defaults)
                merged_config = self._deep_merge(default_config, file_config)
                logger.info(f"Configuration loaded from {self.config_path}")
                return merged_config

            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                logger.info("Using default configuration")

        else:
            # Save default config for reference
            self._save_config(default_config)
            logger.info(f"Created default configuration at {self.config_path}")

        return default_config

    def _get_default_config(self) -> Dict[str, Any]:
        """
        Generate the default configuration.

        Credentials are left empty on purpose so an unconfigured run fails
        validation instead of calling the service.

        Returns:
            Dictionary with default configuration parameters
        """
        return {
            # Project metadata
            'project': {
                'name': 'Open Images Detector',
                'published_model_name': 'OpenImagesDetectorModel',
            },

            # Custom Vision service
            'custom_vision': {
                'endpoint': '',
                'training_key': '',
                'prediction_key': '',              # Falls back to training_key
                'prediction_endpoint': '',         # Falls back to endpoint
                'prediction_resource_id': '',      # ARM id of the prediction resource
                'training_api_version': 'v3.3',
                'prediction_api_version': 'v3.0',
                'request_timeout_seconds': 60,
            },

            # Local data layout
            'data': {
                'dataset_root': str(self.project_root / 'data' / 'dataset'),
                'tags_file': 'tags.txt',
                'labels_subdir': 'normalizedLabel',
                'label_extension': '.txt',
                'test_images_dir': str(self.project_root / 'data' / 'test'),
                'export_dir': str(self.project_root / 'exports'),
                'image_extensions': ['.jpg', '.jpeg', '.png', '.bmp', '.gif'],
                'validate_images': True,
            },

            # Image upload
            'upload': {
                'batch_size': MAX_UPLOAD_BATCH_SIZE,
            },

            # Training and publishing
            'training': {
                'poll_interval_seconds': 1.0,
                'training_type': None,             # 'Regular' or 'Advanced'
                'reserved_budget_in_hours': None,  # Advanced training only
                'force_train': False,
            },

            # Model export
            'export': {
                'poll_interval_seconds': 1.0,
                'presets': [
                    {'platform': 'TensorFlow', 'extension': 'zip'},
                    {'platform': 'CoreML', 'extension': 'mlmodel'},
                ],
            },

            # Logging configuration
            'logging': {
                'level': 'INFO',
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                'date_format': '%Y-%m-%d %H:%M:%S',
                'log_file': None,
                'encoding': 'utf-8',
            },
        }

    def _deep_merge(self, dict1: Dict[str, Any], dict2: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two dictionaries, with dict2 values taking precedence.

        Args:
            dict1: Base dictionary
            dict2: Override dictionary

        Returns:
            Merged dictionary
        """
        result = dict1.copy()

        for key, value in dict2.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_environment_overrides(self) -> None:
        """Override credential settings from environment variables."""
        self._file_values = {}
        for variable, key in ENVIRONMENT_OVERRIDES.items():
            value = self.environ.get(variable)
            if value:
                self._file_values[key] = self.get(key)
                self.set(key, value)
                logger.debug(f"{key} taken from environment variable {variable}")

    def _save_config(self, config: Dict[str, Any]) -> None:
        """
        Save configuration to YAML file.

        Args:
            config: Configuration dictionary to save
        """
        try:
            # Ensure directory exists
            os.makedirs(self.config_path.parent, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(
                    config,
                    f,
                    default_flow_style=False,
                    indent=2,
                    sort_keys=False,
                    allow_unicode=True
                )

        except OSError as e:
            logger.error(f"Failed to save configuration: {e}")

    def _setup_logging(self) -> None:
        """Set up logging configuration based on config parameters."""
        log_level = getattr(logging, str(self.get('logging.level', 'INFO')).upper(), logging.INFO)
        log_format = self.get('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        date_format = self.get('logging.date_format', '%Y-%m-%d %H:%M:%S')

        # Configure root logger
        logging.basicConfig(level=log_level, format=log_format, datefmt=date_format)

        log_file = self.get('logging.log_file')
        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding=self.get('logging.encoding', 'utf-8'))
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
            logging.getLogger().addHandler(file_handler)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., 'upload.batch_size')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Examples:
            >>> config = Config()
            >>> batch_size = config.get('upload.batch_size')
            >>> interval = config.get('training.poll_interval_seconds', 1.0)
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set
        """
        keys = key.split('.')
        config_ref = self.config

        # Navigate to parent dictionary
        for k in keys[:-1]:
            if k not in config_ref:
                config_ref[k] = {}
            config_ref = config_ref[k]

        config_ref[keys[-1]] = value

    def update(self, updates: Dict[str, Any]) -> None:
        """
        Update multiple configuration values.

        Args:
            updates: Dictionary of key-value pairs to update
        """
        for key, value in updates.items():
            self.set(key, value)

    def save(self) -> None:
        """Save current configuration to file, leaving out environment credentials."""
        config = copy.deepcopy(self.config)
        for key, file_value in self._file_values.items():
            section, name = key.split('.')
            config[section][name] = file_value
        self._save_config(config)
        logger.info(f"Configuration saved to {self.config_path}")

    def validate(self) -> Dict[str, Any]:
        """
        Validate configuration parameters for consistency and correctness.

        Returns:
            Dictionary with validation results
        """
        validation_results = {
            'valid': True,
            'errors': [],
            'warnings': []
        }

        # Credentials
        required = {
            'custom_vision.endpoint': 'endpoint',
            'custom_vision.training_key': 'training key',
            'custom_vision.prediction_resource_id': 'prediction resource id',
        }
        for key, name in required.items():
            if not str(self.get(key) or '').strip():
                validation_results['errors'].append(
                    f"Custom Vision {name} is not set ({key})"
                )
                validation_results['valid'] = False

        if not str(self.get('project.name') or '').strip():
            validation_results['errors'].append("Project name is not set (project.name)")
            validation_results['valid'] = False

        if not str(self.get('project.published_model_name') or '').strip():
            validation_results['errors'].append(
                "Published model name is not set (project.published_model_name)"
            )
            validation_results['valid'] = False

        # Upload batching
        batch_size = self.get('upload.batch_size', MAX_UPLOAD_BATCH_SIZE)
        if not isinstance(batch_size, int) or not 1 <= batch_size <= MAX_UPLOAD_BATCH_SIZE:
            validation_results['errors'].append(
                f"Upload batch size must be between 1 and {MAX_UPLOAD_BATCH_SIZE}, got {batch_size}"
            )
            validation_results['valid'] = False

        # Polling
        for key in ('training.poll_interval_seconds', 'export.poll_interval_seconds'):
            interval = self.get(key, 1.0)
            if not isinstance(interval, (int, float)) or interval <= 0:
                validation_results['errors'].append(f"{key} must be a positive number, got {interval}")
                validation_results['valid'] = False

        # Local data
        dataset_root = Path(self.get('data.dataset_root', ''))
        if not dataset_root.exists():
            validation_results['warnings'].append(f"Dataset root does not exist: {dataset_root}")

        return validation_results

    def get_data_paths(self) -> Dict[str, Path]:
        """
        Get all relevant local paths as Path objects.

        Returns:
            Dictionary mapping path names to Path objects
        """
        dataset_root = Path(self.get('data.dataset_root'))

        return {
            'dataset_root': dataset_root,
            'tags_file': dataset_root / self.get('data.tags_file', 'tags.txt'),
            'test_images': Path(self.get('data.test_images_dir')),
            'exports': Path(self.get('data.export_dir')),
        }

    def get_service_settings(self) -> Dict[str, Any]:
        """
        Resolve the settings needed to build the training and prediction clients.

        The prediction key and endpoint fall back to the training ones, which
        is how a single multi-service Custom Vision resource is addressed.

        Returns:
            Dictionary with endpoints, keys, API versions and timeout
        """
        endpoint = self.get('custom_vision.endpoint', '')
        training_key = self.get('custom_vision.training_key', '')

        return {
            'endpoint': endpoint,
            'training_key': training_key,
            'prediction_endpoint': self.get('custom_vision.prediction_endpoint') or endpoint,
            'prediction_key': self.get('custom_vision.prediction_key') or training_key,
            'prediction_resource_id': self.get('custom_vision.prediction_resource_id', ''),
            'training_api_version': self.get('custom_vision.training_api_version', 'v3.3'),
            'prediction_api_version': self.get('custom_vision.prediction_api_version', 'v3.0'),
            'timeout': self.get('custom_vision.request_timeout_seconds', 60),
        }

    def __str__(self) -> str:
        """String representation of configuration."""
        return f"Config(project={self.get('project.name')}, model={self.get('project.published_model_name')})"

    def __repr__(self) -> str:
        """Detailed string representation."""
        return f"Config(config_path='{self.config_path}', loaded={self.config_path.exists()})"
