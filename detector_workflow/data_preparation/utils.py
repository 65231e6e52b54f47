"""
Data preparation utilities for the Detector Workflow.

Key Features:
- Parsing of the tag list and normalized bounding-box label files
- Fixed-size batching for service uploads
- Image file integrity checks with Pillow
- Atomic file writes (text or binary) for downloaded artifacts
- File hashing for artifact integrity reporting

Author: Detector Workflow Team
Date: October 2026
"""

import math
import hashlib
import shutil
import logging
try:
    import fcntl
except ImportError:
    # fcntl is not available on Windows
    fcntl = None
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple, TypeVar, Union
from contextlib import contextmanager

from PIL import Image

logger = logging.getLogger(__name__)

T = TypeVar('T')


def read_tag_list(tags_file: Union[str, Path]) -> List[str]:
    """
    Read the ordered label list, one label per line.

    Surrounding whitespace and blank lines are ignored; a label listed twice
    is kept once, at its first position.

    Raises:
        FileNotFoundError: If the tag list does not exist
    """
    tags_file = Path(tags_file)
    if not tags_file.exists():
        raise FileNotFoundError(f"Tag list not found: {tags_file}")

    with open(tags_file, 'r', encoding='utf-8-sig') as f:
        labels = [line.strip() for line in f]

    return list(dict.fromkeys(label for label in labels if label))


def parse_region_line(line: str) -> Tuple[float, float, float, float]:
    """
    Parse one normalized bounding box line: ``left top width height``.

    Args:
        line: Whitespace-separated floats

    Returns:
        Tuple (left, top, width, height)

    Raises:
        ValueError: If the line does not hold exactly four finite floats
            in [0, 1]
    """
    parts = line.split()
    if len(parts) != 4:
        raise ValueError(f"Expected 4 values (left top width height), got {len(parts)}: {line!r}")

    values = tuple(float(part) for part in parts)
    for value in values:
        if not math.isfinite(value) or not 0.0 <= value <= 1.0:
            raise ValueError(f"Box values must be normalized to [0, 1], got {value}: {line!r}")

    left, top, width, height = values
    return left, top, width, height


def read_region_file(label_file: Union[str, Path]) -> List[Tuple[float, float, float, float]]:
    """
    Read every bounding box of a per-image label file.

    Raises:
        FileNotFoundError: If the label file does not exist
        ValueError: If a line is malformed (the message names file and line)
    """
    label_file = Path(label_file)
    if not label_file.exists():
        raise FileNotFoundError(f"Label file not found: {label_file}")

    boxes = []
    with open(label_file, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                boxes.append(parse_region_line(line))
            except ValueError as e:
                raise ValueError(f"{label_file}:{line_number}: {e}") from e

    return boxes


def batched(items: Sequence[T], batch_size: int) -> Iterator[List[T]]:
    """
    Split ``items`` into consecutive batches of ``batch_size``.

    The last batch holds the remainder, so N items give ceil(N / batch_size)
    batches.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    for start in range(0, len(items), batch_size):
        yield list(items[start:start + batch_size])


class AtomicFileWriter:
    """
    Locked write-to-temp-then-move file writing.

    Used for exported model artifacts so an interrupted download never
    leaves a truncated file under the final name.
    """

    @staticmethod
    @contextmanager
    def atomic_write(filepath: Union[str, Path], mode: str = 'w', encoding: str = 'utf-8'):
        """
        Context manager for atomic file writing with file locking.

        Args:
            filepath: Target file path
            mode: File open mode (default: 'w'; 'wb' for binary content)
            encoding: File encoding for text modes (default: 'utf-8')

        Yields:
            File handle for writing

        Example:
            >>> with AtomicFileWriter.atomic_write('model.zip', 'wb') as f:
            ...     f.write(data)
        """
        filepath = Path(filepath)
        lock_path = filepath.with_suffix(filepath.suffix + '.lock')
        temp_path = filepath.with_suffix(filepath.suffix + '.tmp')
        open_kwargs = {} if 'b' in mode else {'encoding': encoding}

        filepath.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(lock_path, 'w', encoding='utf-8') as lock_file:
                try:
                    if fcntl is not None:
                        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                        logger.debug(f"Acquired file lock for {filepath}")
                    else:
                        logger.debug(f"Using file existence lock for {filepath}")

                    with open(temp_path, mode, **open_kwargs) as temp_file:
                        yield temp_file

                    shutil.move(str(temp_path), str(filepath))
                    logger.debug(f"Atomically wrote {filepath}")

                except BlockingIOError as e:
                    logger.error(f"Could not acquire lock for {filepath}: {e}")
                    raise IOError(f"File lock acquisition failed: {e}")

                finally:
                    if fcntl is not None:
                        try:
                            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
                        except OSError as e:
                            logger.warning(f"Failed to release lock: {e}")

        except Exception as e:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as cleanup_error:
                    logger.warning(f"Failed to cleanup temp file {temp_path}: {cleanup_error}")

            logger.error(f"Atomic write failed for {filepath}: {e}")
            raise

        finally:
            try:
                if lock_path.exists():
                    lock_path.unlink()
            except OSError as e:
                logger.warning(f"Failed to cleanup lock file {lock_path}: {e}")


class DataIntegrityValidator:
    """
    Integrity checks for image files before they are uploaded.

    Only checks that a file is a readable image with an allowed extension;
    the images themselves are never modified.
    """

    def __init__(self, config):
        """
        Initialize data integrity validator.

        Args:
            config: Configuration object containing validation parameters
        """
        self.config = config
        self.valid_extensions = [
            ext.lower() for ext in config.get('data.image_extensions', ['.jpg', '.jpeg', '.png', '.bmp'])
        ]

        logger.debug(f"Initialized DataIntegrityValidator with extensions={self.valid_extensions}")

    def is_image_candidate(self, path: Union[str, Path]) -> bool:
        """Whether ``path`` is a regular file with an allowed image extension."""
        path = Path(path)
        return path.is_file() and path.suffix.lower() in self.valid_extensions

    def validate_image_file(self, image_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Validate a single image file.

        Args:
            image_path: Path to image file

        Returns:
            Dictionary with validation results containing:
            - path: File path
            - exists: Whether file exists
            - valid: Overall validation status
            - errors: List of validation errors
            - properties: Image properties (if readable)
        """
        image_path = Path(image_path)

        validation_result = {
            'path': str(image_path),
            'exists': image_path.exists(),
            'valid': False,
            'errors': [],
            'properties': {}
        }

        if not validation_result['exists']:
            validation_result['errors'].append('File does not exist')
            return validation_result

        file_extension = image_path.suffix.lower()
        if file_extension not in self.valid_extensions:
            validation_result['errors'].append(
                f'Invalid extension: {file_extension}. '
                f'Allowed: {", ".join(self.valid_extensions)}'
            )

        file_size = image_path.stat().st_size
        if file_size == 0:
            validation_result['errors'].append('File is empty')
            return validation_result

        try:
            with Image.open(image_path) as img:
                img.verify()

            # Reopen to get properties (verify closes the image)
            with Image.open(image_path) as img:
                width, height = img.size
                validation_result['properties'] = {
                    'width': width,
                    'height': height,
                    'mode': img.mode,
                    'format': img.format,
                    'file_size': file_size,
                }

        except (OSError, SyntaxError, ValueError) as e:
            validation_result['errors'].append(f'Image validation error: {str(e)}')
            logger.debug(f"Validation failed for {image_path}: {e}")

        validation_result['valid'] = len(validation_result['errors']) == 0
        return validation_result


class FileHasher:
    """Cryptographic hashes for downloaded artifacts."""

    @staticmethod
    def generate_file_hash(filepath: Union[str, Path],
                           algorithm: str = 'sha256') -> str:
        """
        Generate cryptographic hash for a file.

        Args:
            filepath: Path to file
            algorithm: Hashing algorithm ('sha256', 'md5', 'sha1')

        Returns:
            Hexadecimal hash string

        Raises:
            FileNotFoundError: If file does not exist
            ValueError: If algorithm is not supported
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        if not filepath.is_file():
            raise ValueError(f"Path is not a file: {filepath}")

        try:
            hash_obj = hashlib.new(algorithm)
        except ValueError:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")

        with open(filepath, 'rb') as f:
            # Read file in chunks to handle large files efficiently
            for chunk in iter(lambda: f.read(8192), b''):
                hash_obj.update(chunk)

        return hash_obj.hexdigest()


def iter_files(directory: Union[str, Path]) -> Iterable[Path]:
    """Regular files directly inside ``directory``, sorted by name."""
    return sorted(path for path in Path(directory).iterdir() if path.is_file())
