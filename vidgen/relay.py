"""
Phase-by-phase relay binding.

For deployments that orchestrate each HTTP phase themselves (build URL,
build headers, build body, send, parse) instead of calling a provider in
one step. Every phase delegates to the same KlingProvider logic used by
the Client: key parsing, token signing, payload building and status
mapping are not reimplemented here.

Relay endpoints:
    POST {base_url}/v1/videos/image2video
    GET  {base_url}/v1/videos/image2video/{task_id}
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from vidgen.core.config import ProviderConfig
from vidgen.core.errors import (
    NetworkError,
    TaskAdaptorError,
    UnsupportedProviderError,
    ValidationError,
    VidgenError,
)
from vidgen.providers.kling import (
    DEFAULT_BASE_URL,
    SUPPORTED_MODELS,
    USER_AGENT,
    KlingProvider,
    KlingTaskResponse,
    create_token,
    parse_api_key,
)
from vidgen.types import GenerationRequest, KlingOptions, TaskResult

logger = logging.getLogger(__name__)


RELAY_GENERATION_PATH = "/v1/videos/image2video"
RELAY_DEFAULT_MODEL = "kling-v1"
RELAY_DEFAULT_MODE = "std"
RELAY_DEFAULT_CFG_SCALE = 0.5
RELAY_DEFAULT_DURATION = 5
RELAY_TIMEOUT = 30.0
RELAY_FETCH_TIMEOUT = 15.0


@dataclass
class TaskRelayInfo:
    """Per-call routing information supplied by the relay host."""
    channel_type: int = 0
    base_url: str = ""
    api_key: str = ""
    action: str = ""


class RelaySubmitRequest(BaseModel):
    """Inbound relay request body."""
    prompt: str = ""
    model: str = ""
    mode: str = ""           # "std" or "pro"
    image: str = ""
    size: str = ""           # "WIDTHxHEIGHT", used for the aspect ratio
    duration: int = 0        # 5 or 10, 0 means default
    metadata: dict[str, Any] = Field(default_factory=dict)


class RelayEnvelope(BaseModel):
    """Generic {code, message, data} response envelope."""
    code: str
    message: str = ""
    data: Any = None

    @property
    def is_success(self) -> bool:
        return self.code == "success"


def parse_size(size: str) -> tuple[int, int]:
    """Parse "1280x720" into (1280, 720); anything else gives (0, 0)."""
    width, sep, height = (size or "").lower().partition("x")
    if not sep:
        return 0, 0
    try:
        return int(width), int(height)
    except ValueError:
        return 0, 0


class TaskAdaptor(Protocol):
    """Phase-by-phase contract a relay host drives."""

    def init(self, info: TaskRelayInfo) -> None: ...

    def validate_request_and_set_action(
        self, request_body: bytes, action: str
    ) -> RelaySubmitRequest: ...

    def build_request_url(self, info: TaskRelayInfo) -> str: ...

    def build_request_header(self, info: TaskRelayInfo) -> dict[str, str]: ...

    def build_request_body(self, request: RelaySubmitRequest) -> bytes: ...

    async def do_request(
        self, url: str, headers: dict[str, str], request_body: bytes
    ) -> httpx.Response: ...

    def do_response(self, response: httpx.Response) -> tuple[str, bytes]: ...

    async def fetch_task(self, base_url: str, key: str, task_id: str) -> httpx.Response: ...

    def get_model_list(self) -> list[str]: ...

    def get_channel_name(self) -> str: ...

    async def close(self) -> None: ...


class KlingTaskAdaptor:
    """TaskAdaptor for Kling, implemented on top of KlingProvider."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.channel_type = 0
        self.action = ""
        self.base_url = DEFAULT_BASE_URL
        self._provider: Optional[KlingProvider] = None
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=RELAY_TIMEOUT)
            self._owns_client = True
        return self._http_client

    async def close(self):
        """Close the HTTP client if this adaptor created it."""
        if self._http_client and self._owns_client and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: Optional[bytes] = None,
        timeout: float = RELAY_TIMEOUT,
    ) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, url, headers=headers, content=content, timeout=timeout)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Kling relay request timed out: {type(e).__name__}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Kling relay request failed: {type(e).__name__}: {e}") from e

    @property
    def provider(self) -> KlingProvider:
        if self._provider is None:
            raise TaskAdaptorError(500, "adaptor_not_initialized", "provider not initialized")
        return self._provider

    def init(self, info: TaskRelayInfo) -> None:
        """Bind the adaptor to a channel's endpoint and credentials."""
        self.channel_type = info.channel_type
        self.base_url = (info.base_url or DEFAULT_BASE_URL).rstrip("/")

        # The provider only signs and translates here; HTTP goes through _send
        config = ProviderConfig(base_url=self.base_url, api_key=info.api_key, timeout=RELAY_TIMEOUT)
        try:
            self._provider = KlingProvider(config)
        except VidgenError as e:
            self._provider = None
            raise TaskAdaptorError(401, "invalid_api_key", str(e)) from e

    def to_generation_request(self, request: RelaySubmitRequest) -> GenerationRequest:
        """Map a relay request onto the canonical request shape."""
        metadata = dict(request.metadata or {})
        width, height = parse_size(request.size)

        image = request.image
        if isinstance(metadata.get("image"), str) and metadata["image"]:
            image = metadata["image"]

        mode = request.mode
        if not mode and isinstance(metadata.get("mode"), str):
            mode = metadata["mode"]

        return GenerationRequest(
            prompt=request.prompt,
            image=image,
            duration=float(request.duration or RELAY_DEFAULT_DURATION),
            width=width,
            height=height,
            model=request.model,
            metadata=metadata,
            options=KlingOptions(mode=mode or RELAY_DEFAULT_MODE, cfg_scale=RELAY_DEFAULT_CFG_SCALE),
        )

    def validate_request_and_set_action(
        self, request_body: bytes, action: str
    ) -> RelaySubmitRequest:
        action = (action or "").lower()

        try:
            request = RelaySubmitRequest.model_validate_json(request_body)
        except PydanticValidationError as e:
            raise TaskAdaptorError(400, "invalid_request", f"Failed to parse request: {e}") from e

        if action != "generate":
            raise TaskAdaptorError(400, "invalid_request", f"unsupported action: {action}")

        if not request.prompt:
            raise TaskAdaptorError(400, "invalid_request", "prompt is required")

        if not request.model:
            request.model = RELAY_DEFAULT_MODEL

        try:
            self.provider.validate_request(self.to_generation_request(request))
        except ValidationError as e:
            raise TaskAdaptorError(400, "invalid_request", str(e)) from e

        self.action = action
        return request

    def build_request_url(self, info: TaskRelayInfo) -> str:
        base_url = (info.base_url or self.base_url or DEFAULT_BASE_URL).rstrip("/")
        return f"{base_url}{RELAY_GENERATION_PATH}"

    def build_request_header(self, info: TaskRelayInfo) -> dict[str, str]:
        provider = self.provider

        # Signing failure is fatal: the raw key is never sent as a bearer token
        try:
            token = provider.create_token()
        except VidgenError as e:
            raise TaskAdaptorError(500, "sign_request_failed", str(e)) from e

        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
        }

    def build_request_body(self, request: RelaySubmitRequest) -> bytes:
        payload = self.provider.build_payload(
            self.to_generation_request(request),
            default_mode=RELAY_DEFAULT_MODE,
            default_model=RELAY_DEFAULT_MODEL,
        )
        payload = payload.model_copy(update={"model_name": payload.model})
        return payload.model_dump_json(exclude_none=True).encode()

    async def do_request(
        self, url: str, headers: dict[str, str], request_body: bytes
    ) -> httpx.Response:
        return await self._send("POST", url, headers, request_body)

    def do_response(self, response: httpx.Response) -> tuple[str, bytes]:
        """
        Extract the task id from a submit response.

        Tries Kling's native shape first, then the generic envelope. Vendor
        rejections are reported with local_error=False.
        """
        body = response.content
        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Unmarshal Kling response failed: {e}, body: {body[:200]!r}")
            raise TaskAdaptorError(
                500, "unmarshal_response_body_failed", f"{e}, body: {body[:200]!r}"
            ) from e

        code = data.get("code") if isinstance(data, dict) else None
        if isinstance(code, int) and not isinstance(code, bool):
            if code != 0:
                raise TaskAdaptorError(
                    response.status_code,
                    f"kling_error_{code}",
                    str(data.get("message", "")),
                    local_error=False,
                )
            task_data = data.get("data")
            task_id = task_data.get("task_id") if isinstance(task_data, dict) else None
            if not isinstance(task_id, str) or not task_id:
                raise TaskAdaptorError(500, "missing_task_id", "response carries no task id")
            return task_id, body

        try:
            envelope = RelayEnvelope.model_validate(data)
        except PydanticValidationError as e:
            raise TaskAdaptorError(
                500, "unmarshal_response_body_failed", f"{e}, body: {body[:200]!r}"
            ) from e

        if not envelope.is_success:
            raise TaskAdaptorError(
                response.status_code, envelope.code, envelope.message, local_error=False
            )

        if not isinstance(envelope.data, str) or not envelope.data:
            raise TaskAdaptorError(500, "missing_task_id", "response carries no task id")

        return envelope.data, body

    async def fetch_task(self, base_url: str, key: str, task_id: str) -> httpx.Response:
        """Fetch raw task state, signing with the given "access,secret" key."""
        base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        url = f"{base_url}{RELAY_GENERATION_PATH}/{task_id}"

        try:
            access_key, secret_key = parse_api_key(key)
            token = create_token(access_key, secret_key)
        except VidgenError as e:
            raise TaskAdaptorError(401, "sign_request_failed", str(e)) from e

        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
        }

        return await self._send("GET", url, headers, timeout=RELAY_FETCH_TIMEOUT)

    def parse_task(self, response: httpx.Response) -> TaskResult:
        """Turn a fetch_task response into a canonical TaskResult."""
        try:
            body = KlingTaskResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise TaskAdaptorError(500, "unmarshal_response_body_failed", str(e)) from e

        if body.code != 0:
            raise TaskAdaptorError(
                response.status_code, f"kling_error_{body.code}", body.message, local_error=False
            )
        if body.data is None:
            raise TaskAdaptorError(500, "missing_task_data", "response carries no task data")

        return self.provider.to_task_result(body.data)

    def get_model_list(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def get_channel_name(self) -> str:
        return "kling"


ADAPTORS = {
    "kling": KlingTaskAdaptor,
}


class TaskRelay:
    """
    Runs the full relay workflow for one vendor.

    Usage:
        relay = TaskRelay("kling")
        info = TaskRelayInfo(api_key="ak,sk", action="generate")
        task_id, raw = await relay.process_video_generation(info, body_bytes)
        response = await relay.process_task_fetch(info, task_id)
    """

    def __init__(self, vendor: str = "kling", http_client: Optional[httpx.AsyncClient] = None):
        adaptor_cls = ADAPTORS.get((vendor or "").lower())
        if adaptor_cls is None:
            raise UnsupportedProviderError(vendor)

        self.vendor = vendor.lower()
        self.adaptor: TaskAdaptor = adaptor_cls(http_client=http_client)

    async def close(self):
        await self.adaptor.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def process_video_generation(
        self, info: TaskRelayInfo, request_body: bytes
    ) -> tuple[str, bytes]:
        """Validate, build, send and parse a submit call. Raises TaskAdaptorError."""
        adaptor = self.adaptor
        adaptor.init(info)

        request = adaptor.validate_request_and_set_action(request_body, info.action)
        url = adaptor.build_request_url(info)
        headers = adaptor.build_request_header(info)

        try:
            body = adaptor.build_request_body(request)
        except (VidgenError, PydanticValidationError) as e:
            raise TaskAdaptorError(500, "build_body_failed", str(e)) from e

        try:
            response = await adaptor.do_request(url, headers, body)
        except NetworkError as e:
            raise TaskAdaptorError(500, "request_failed", str(e)) from e

        task_id, raw = adaptor.do_response(response)
        logger.info(f"Relay [{self.vendor}] task submitted: {task_id}")
        return task_id, raw

    async def process_task_fetch(self, info: TaskRelayInfo, task_id: str) -> httpx.Response:
        self.adaptor.init(info)
        return await self.adaptor.fetch_task(info.base_url, info.api_key, task_id)
