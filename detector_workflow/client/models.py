"""
Data models for Custom Vision entities.

Dataclasses mirroring the JSON documents of the Custom Vision training and
prediction APIs. ``from_api`` constructors take the service's camelCase
payloads; ``to_api`` renders upload payloads.
"""

import re
import base64
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

# Service-defined states. Treated as an opaque contract: only the
# in-progress values are compared against.
ITERATION_TRAINING = "Training"
ITERATION_COMPLETED = "Completed"
ITERATION_FAILED = "Failed"

EXPORT_EXPORTING = "Exporting"
EXPORT_DONE = "Done"
EXPORT_FAILED = "Failed"

# Per-image upload results the service counts as success
UPLOAD_OK_STATUSES = ("OK", "OKDuplicate")

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a service timestamp such as ``2026-10-19T07:14:03.1234567Z``."""
    if not value:
        return None
    normalized = value.replace("Z", "+00:00")
    # .NET emits up to 7 fractional digits, datetime accepts 6
    normalized = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)
    return datetime.fromisoformat(normalized)


@dataclass(frozen=True)
class Domain:
    """Custom Vision domain (model family) of a project."""
    id: str
    name: str
    type: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Domain':
        return cls(id=data['id'], name=data.get('name', ''), type=data.get('type', ''))


@dataclass(frozen=True)
class Project:
    """Represents a Custom Vision project."""
    id: str
    name: str
    description: str = ""
    domain_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Project':
        settings = data.get('settings') or {}
        return cls(
            id=data['id'],
            name=data['name'],
            description=data.get('description') or "",
            domain_id=settings.get('domainId'),
        )


@dataclass(frozen=True)
class Tag:
    """Remote label entity associated with training images."""
    id: str
    name: str
    image_count: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Tag':
        return cls(id=data['id'], name=data['name'], image_count=data.get('imageCount', 0) or 0)


@dataclass(frozen=True)
class Region:
    """Normalized bounding box (all values in [0, 1]) assigned to one tag."""
    tag_id: str
    left: float
    top: float
    width: float
    height: float

    def to_api(self) -> Dict[str, Any]:
        return {
            'tagId': self.tag_id,
            'left': self.left,
            'top': self.top,
            'width': self.width,
            'height': self.height,
        }


@dataclass(frozen=True)
class ImageRecord:
    """Image file bytes plus the regions labeling it, keyed by filename."""
    name: str
    contents: bytes = field(repr=False)
    regions: List[Region] = field(default_factory=list)

    @property
    def tag_ids(self) -> List[str]:
        """Distinct tag ids referenced by the regions, in first-seen order."""
        return list(dict.fromkeys(region.tag_id for region in self.regions))

    def to_api(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'contents': base64.b64encode(self.contents).decode('ascii'),
            'regions': [region.to_api() for region in self.regions],
        }


@dataclass(frozen=True)
class ImageUploadResult:
    """Outcome for one image of an upload batch."""
    source: str
    status: str

    @property
    def ok(self) -> bool:
        return self.status in UPLOAD_OK_STATUSES


@dataclass(frozen=True)
class UploadSummary:
    """Service summary for one upload batch."""
    is_batch_successful: bool
    images: List[ImageUploadResult] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'UploadSummary':
        return cls(
            is_batch_successful=bool(data.get('isBatchSuccessful', False)),
            images=[
                ImageUploadResult(source=item.get('sourceUrl') or "", status=item.get('status', ''))
                for item in data.get('images') or []
            ],
        )

    @property
    def failures(self) -> List[ImageUploadResult]:
        return [image for image in self.images if not image.ok]


@dataclass(frozen=True)
class Iteration:
    """One training run of a project."""
    id: str
    name: str
    status: str
    last_modified: Optional[datetime] = None
    publish_name: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Iteration':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            status=data.get('status', ''),
            last_modified=parse_timestamp(data.get('lastModified')),
            publish_name=data.get('publishName'),
        )

    @property
    def is_training(self) -> bool:
        return self.status == ITERATION_TRAINING


@dataclass(frozen=True)
class Export:
    """On-demand conversion of a trained iteration into a model artifact."""
    platform: str
    status: str
    download_uri: Optional[str] = None
    flavor: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Export':
        return cls(
            platform=data.get('platform', ''),
            status=data.get('status', ''),
            download_uri=data.get('downloadUri'),
            flavor=data.get('flavor'),
        )

    @property
    def is_exporting(self) -> bool:
        return self.status == EXPORT_EXPORTING

    @property
    def is_done(self) -> bool:
        return self.status == EXPORT_DONE


@dataclass(frozen=True)
class BoundingBox:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class Prediction:
    """A single detection returned by the prediction endpoint."""
    tag_id: str
    tag_name: str
    probability: float
    bounding_box: Optional[BoundingBox] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Prediction':
        box = data.get('boundingBox')
        return cls(
            tag_id=data.get('tagId', ''),
            tag_name=data.get('tagName', ''),
            probability=float(data.get('probability', 0.0)),
            bounding_box=BoundingBox(
                left=box['left'], top=box['top'], width=box['width'], height=box['height']
            ) if box else None,
        )
