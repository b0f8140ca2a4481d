"""
Canonical request/response shapes shared by every provider.

Vendor adapters translate to and from these; callers never see vendor wire
formats.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union


class TaskStatus(str, Enum):
    """Status of a generation task as observed by the client."""
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class ResponseFormat(str, Enum):
    URL = "url"
    B64_JSON = "b64_json"


class QualityLevel(str, Enum):
    LOW = "low"
    STANDARD = "standard"
    HIGH = "high"


class ProviderType(str, Enum):
    """Registered video generation vendors."""
    KLING = "kling"
    JIMENG = "jimeng"
    VIDU = "vidu"


@dataclass(frozen=True)
class KlingOptions:
    """Kling-specific knobs carried alongside a canonical request."""
    mode: Optional[str] = None       # "std"/"pro" on image2video, derived when unset
    cfg_scale: Optional[float] = None


# Extend with new per-vendor option types as vendors are implemented
ProviderOptions = Union[KlingOptions]


@dataclass(frozen=True)
class GenerationRequest:
    """Request for video generation. At least one of prompt/image is required."""
    prompt: str = ""
    image: str = ""                  # URL or base64
    style: str = ""
    duration: float = 5.0            # seconds
    fps: Optional[int] = None
    width: int = 0
    height: int = 0
    response_format: Optional[ResponseFormat] = None
    quality_level: Optional[QualityLevel] = None
    seed: Optional[int] = None
    model: str = ""
    # Vendor passthrough, e.g. {"mode": "pro"}
    metadata: Mapping[str, Any] = field(default_factory=dict)
    options: Optional[ProviderOptions] = None


@dataclass
class GenerationResponse:
    """Returned on task creation."""
    task_id: str
    status: Union[TaskStatus, str] = TaskStatus.QUEUED


@dataclass
class Metadata:
    """Properties of the produced video, as reported by the vendor."""
    duration: Optional[float] = None
    fps: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    seed: Optional[int] = None
    format: Optional[str] = None


# TaskError.code when the vendor describes a failure without a numeric code
TASK_ERROR_NO_CODE = 0


@dataclass
class TaskError:
    code: int
    message: str


@dataclass
class TaskResult:
    """
    Snapshot of a task's remote state.

    url/metadata are set when status is succeeded; error when failed.
    Status may be a plain string if a custom provider reports a value
    outside the TaskStatus vocabulary.
    """
    task_id: str
    status: Union[TaskStatus, str]
    url: Optional[str] = None
    format: Optional[str] = None
    metadata: Optional[Metadata] = None
    error: Optional[TaskError] = None
