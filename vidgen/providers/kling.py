"""
Kling video generation provider.

Translates canonical requests into Kling's wire format, signs every call
with a short-lived HS256 JWT built from the "access_key,secret_key" pair,
and maps Kling task state back onto TaskResult.

Endpoints:
    POST {base_url}/api/open/v1/video/generation
    GET  {base_url}/api/open/v1/video/generation/{task_id}
"""

import logging
import time
from typing import Any, Optional

import httpx
import jwt
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from vidgen.core.config import ProviderConfig
from vidgen.core.errors import (
    APIError,
    AuthenticationFailedError,
    InsufficientQuotaError,
    InvalidConfigurationError,
    InvalidRequestError,
    NetworkError,
    RateLimitExceededError,
    TaskNotFoundError,
    ValidationError,
    VidgenError,
)
from vidgen.types import (
    TASK_ERROR_NO_CODE,
    GenerationRequest,
    GenerationResponse,
    KlingOptions,
    Metadata,
    TaskError,
    TaskResult,
    TaskStatus,
)

logger = logging.getLogger(__name__)


PROVIDER_NAME = "Kling"
DEFAULT_BASE_URL = "https://api.klingai.com"
GENERATION_PATH = "/api/open/v1/video/generation"
USER_AGENT = "vidgen-sdk/1.0"

DEFAULT_MODEL = "kling-v2-master"
SUPPORTED_MODELS = [
    "kling-v1",
    "kling-v1-6",
    "kling-v2-master",
]

# Kling only renders these exact clip lengths
SUPPORTED_DURATIONS = (5.0, 10.0)

TOKEN_TTL_SECONDS = 1800
TOKEN_NOT_BEFORE_SKEW = 5

# Kling task vocabulary -> canonical status. Unknown values fall back to queued.
STATUS_MAP = {
    "submitted": TaskStatus.QUEUED,
    "queued": TaskStatus.QUEUED,
    "processing": TaskStatus.PROCESSING,
    "succeed": TaskStatus.SUCCEEDED,
    "failed": TaskStatus.FAILED,
}

# Vendor error codes with a more specific meaning than "API error"
AUTH_ERROR_CODES = {1000, 1001, 1002, 1003, 1004, 1103}
QUOTA_ERROR_CODES = {1100, 1101, 1102}
INVALID_REQUEST_ERROR_CODES = {1200, 1201, 1202, 1300, 1301, 1304}
NOT_FOUND_ERROR_CODES = {1203}
RATE_LIMIT_ERROR_CODES = {1302, 1303}


# ============================================================
# Wire models
# ============================================================

class KlingGenerationPayload(BaseModel):
    """Body of a Kling generation request."""
    prompt: Optional[str] = None
    image: Optional[str] = None
    mode: str
    duration: str
    aspect_ratio: str
    model: str
    model_name: Optional[str] = None
    cfg_scale: Optional[float] = None


class KlingCreateData(BaseModel):
    task_id: str = ""


class KlingCreateResponse(BaseModel):
    code: int
    message: str = ""
    data: Optional[KlingCreateData] = None


class KlingVideo(BaseModel):
    id: str = ""
    url: str = ""
    # Documented as a string ("5"), occasionally sent as a number
    duration: Any = None


class KlingTaskOutput(BaseModel):
    videos: list[KlingVideo] = Field(default_factory=list)


class KlingTaskData(BaseModel):
    id: str = ""
    task_id: str = ""
    status: str = ""
    task_status: str = ""
    task_status_msg: str = ""
    task_result: Optional[KlingTaskOutput] = None


class KlingTaskResponse(BaseModel):
    code: int
    message: str = ""
    data: Optional[KlingTaskData] = None


# ============================================================
# Helpers
# ============================================================

def parse_api_key(api_key: str, secret_key: Optional[str] = None) -> tuple[str, str]:
    """
    Split a Kling credential into (access_key, secret_key).

    Accepts "access_key,secret_key", or a bare access key when the secret is
    supplied separately.
    """
    if secret_key and api_key and "," not in api_key:
        parts = [api_key, secret_key]
    else:
        parts = (api_key or "").split(",")

    parts = [p.strip() for p in parts]
    if len(parts) != 2 or not all(parts):
        raise InvalidConfigurationError(
            "invalid API key format for Kling, expected 'access_key,secret_key'"
        )
    return parts[0], parts[1]


def create_token(access_key: str, secret_key: str, now: Optional[float] = None) -> str:
    """Build the bearer JWT Kling expects: iss=access key, 30 min lifetime."""
    if not access_key or not secret_key:
        raise VidgenError("access key and secret key are required")

    issued = int(now if now is not None else time.time())
    payload = {
        "iss": access_key,
        "exp": issued + TOKEN_TTL_SECONDS,
        "nbf": issued - TOKEN_NOT_BEFORE_SKEW,
    }
    try:
        return jwt.encode(
            payload,
            secret_key,
            algorithm="HS256",
            headers={"alg": "HS256", "typ": "JWT"},
        )
    except (jwt.PyJWTError, TypeError, ValueError) as e:
        raise VidgenError(f"failed to create JWT token: {e}") from e


def aspect_ratio(width: int, height: int) -> str:
    """Bucket a frame size into one of Kling's aspect ratios."""
    if width <= 0 or height <= 0:
        return "1:1"

    ratio = width / height
    if ratio > 1.5:
        return "16:9"
    if ratio < 0.7:
        return "9:16"
    return "1:1"


def map_status(vendor_status: str) -> TaskStatus:
    return STATUS_MAP.get(vendor_status, TaskStatus.QUEUED)


def api_error_for(code: int, message: str, provider: str = PROVIDER_NAME) -> APIError:
    """Build the most specific APIError subclass for a Kling error code."""
    if code in RATE_LIMIT_ERROR_CODES:
        return RateLimitExceededError(code, message, provider)
    if code in AUTH_ERROR_CODES:
        return AuthenticationFailedError(code, message, provider)
    if code in QUOTA_ERROR_CODES:
        return InsufficientQuotaError(code, message, provider)
    if code in NOT_FOUND_ERROR_CODES:
        return TaskNotFoundError(code, message, provider)
    if code in INVALID_REQUEST_ERROR_CODES:
        return InvalidRequestError(code, message, provider)
    return APIError(code, message, provider)


# ============================================================
# Provider
# ============================================================

class KlingProvider:
    """
    Kling adapter.

    Usage:
        provider = KlingProvider(ProviderConfig(api_key="ak,sk"))
        resp = await provider.create_generation(request)
        result = await provider.get_generation(resp.task_id)
        await provider.close()
    """

    def __init__(
        self,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if config is None:
            raise InvalidConfigurationError("invalid configuration")

        self.config = config
        self.access_key, self.secret_key = parse_api_key(config.api_key, config.secret_key)
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = config.timeout if config.timeout and config.timeout > 0 else 30.0

        self._http_client = http_client
        self._owns_client = http_client is None

    def name(self) -> str:
        return PROVIDER_NAME

    def supported_models(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def validate_request(self, req: GenerationRequest) -> None:
        if req.model and req.model not in SUPPORTED_MODELS:
            raise ValidationError("model", f"unsupported model: {req.model}")

        if req.duration not in SUPPORTED_DURATIONS:
            raise ValidationError("duration", "Kling only supports 5s or 10s duration")

    # -- HTTP plumbing -------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._http_client

    async def close(self):
        """Close the HTTP client if this provider created it."""
        if self._http_client and self._owns_client and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def create_token(self) -> str:
        return create_token(self.access_key, self.secret_key)

    def auth_headers(self) -> dict[str, str]:
        """Headers for a signed call. Raises if the token cannot be built."""
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.create_token()}",
            "User-Agent": USER_AGENT,
        }

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: Optional[bytes] = None,
    ) -> httpx.Response:
        """Issue a raw request, converting transport failures to NetworkError."""
        client = await self._get_client()
        try:
            return await client.request(method, url, headers=headers, content=content)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{PROVIDER_NAME} request timed out: {type(e).__name__}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"{PROVIDER_NAME} request failed: {type(e).__name__}: {e}") from e

    def decode(self, response: httpx.Response) -> dict:
        """Decode a JSON body; non-JSON error pages become APIError(http status)."""
        try:
            data = response.json()
        except ValueError as e:
            if response.status_code >= 400:
                raise APIError(
                    response.status_code,
                    response.text[:200] or response.reason_phrase,
                    PROVIDER_NAME,
                ) from e
            raise VidgenError(f"failed to decode response: {e}") from e

        if not isinstance(data, dict):
            raise VidgenError(f"failed to decode response: unexpected body {type(data).__name__}")
        return data

    async def _call(self, method: str, url: str, payload: Optional[BaseModel] = None) -> dict:
        headers = self.auth_headers()
        content = None
        if payload is not None:
            content = payload.model_dump_json(exclude_none=True).encode()

        response = await self.send(method, url, headers, content)
        return self.decode(response)

    # -- Translation ---------------------------------------------------

    def resolve_mode(self, req: GenerationRequest, default: Optional[str] = None) -> str:
        """
        Pick the Kling mode string.

        Typed KlingOptions win, then metadata["mode"], then the caller's
        default, then img2video/txt2video from whether an image is present.
        """
        if isinstance(req.options, KlingOptions) and req.options.mode:
            return req.options.mode

        mode = (req.metadata or {}).get("mode")
        if isinstance(mode, str) and mode:
            return mode

        if default:
            return default
        return "img2video" if req.image else "txt2video"

    def build_payload(
        self,
        req: GenerationRequest,
        default_mode: Optional[str] = None,
        default_model: str = DEFAULT_MODEL,
    ) -> KlingGenerationPayload:
        cfg_scale = None
        if isinstance(req.options, KlingOptions):
            cfg_scale = req.options.cfg_scale

        return KlingGenerationPayload(
            prompt=req.prompt or None,
            image=req.image or None,
            mode=self.resolve_mode(req, default_mode),
            duration="10" if req.duration == 10.0 else "5",
            aspect_ratio=aspect_ratio(req.width, req.height),
            model=req.model or default_model,
            cfg_scale=cfg_scale,
        )

    def to_task_result(self, data: KlingTaskData) -> TaskResult:
        status = map_status(data.status or data.task_status)
        result = TaskResult(task_id=data.id or data.task_id, status=status)

        if data.task_result and data.task_result.videos:
            video = data.task_result.videos[0]
            result.url = video.url
            result.format = "mp4"

            try:
                duration = float(video.duration)
            except (TypeError, ValueError):
                logger.warning(f"Kling task {result.task_id}: unparsable duration {video.duration!r}")
            else:
                result.metadata = Metadata(duration=duration, format="mp4")

        if status == TaskStatus.FAILED:
            # Kling reports task failures as text only
            result.error = TaskError(
                code=TASK_ERROR_NO_CODE,
                message=data.task_status_msg or "generation failed",
            )

        return result

    # -- Operations ----------------------------------------------------

    async def create_generation(self, req: GenerationRequest) -> GenerationResponse:
        payload = self.build_payload(req)
        url = f"{self.base_url}{GENERATION_PATH}"

        logger.info(
            f"Kling generation request: model={payload.model}, mode={payload.mode}, "
            f"duration={payload.duration}, aspect_ratio={payload.aspect_ratio}"
        )
        data = await self._call("POST", url, payload)

        try:
            body = KlingCreateResponse.model_validate(data)
        except PydanticValidationError as e:
            raise VidgenError(f"failed to decode response: {e}") from e

        if body.code != 0:
            raise api_error_for(body.code, body.message)

        task_id = body.data.task_id if body.data else ""
        logger.info(f"Kling task created: {task_id}")
        return GenerationResponse(task_id=task_id, status=TaskStatus.QUEUED)

    async def get_generation(self, task_id: str) -> TaskResult:
        url = f"{self.base_url}{GENERATION_PATH}/{task_id}"
        data = await self._call("GET", url)

        try:
            body = KlingTaskResponse.model_validate(data)
        except PydanticValidationError as e:
            raise VidgenError(f"failed to decode response: {e}") from e

        if body.code != 0:
            raise api_error_for(body.code, body.message)

        task = body.data or KlingTaskData(id=task_id)
        result = self.to_task_result(task)
        if not result.task_id:
            result.task_id = task_id

        logger.debug(f"Kling task {task_id}: status={result.status.value}")
        return result
