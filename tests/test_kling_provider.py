"""
Kling provider tests - request translation, signing and response mapping.

Vendor HTTP is stubbed with httpx.MockTransport.

Run with:
    python -m pytest tests/test_kling_provider.py -v
"""

import json
import os
import sys

import httpx
import jwt
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

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
from vidgen.providers.kling import (
    DEFAULT_BASE_URL,
    KlingProvider,
    aspect_ratio,
    create_token,
    map_status,
    parse_api_key,
)
from vidgen.types import TASK_ERROR_NO_CODE, GenerationRequest, KlingOptions, TaskStatus

BASE_URL = "https://kling.test"


def make_provider(handler=None, api_key: str = "ak,sk") -> KlingProvider:
    http_client = None
    if handler is not None:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return KlingProvider(ProviderConfig(base_url=BASE_URL, api_key=api_key), http_client=http_client)


class TestApiKey:
    """Access/secret key parsing."""

    def test_split_pair(self):
        assert parse_api_key("ak,sk") == ("ak", "sk")

    def test_whitespace_is_stripped(self):
        assert parse_api_key(" ak , sk ") == ("ak", "sk")

    def test_separate_secret(self):
        assert parse_api_key("ak", secret_key="sk") == ("ak", "sk")

    @pytest.mark.parametrize("api_key", ["ak", "ak,sk,extra", "ak,", ",sk", ""])
    def test_malformed_key_rejected(self, api_key):
        with pytest.raises(InvalidConfigurationError):
            parse_api_key(api_key)

    def test_provider_construction_fails_on_bad_key(self):
        with pytest.raises(InvalidConfigurationError):
            KlingProvider(ProviderConfig(api_key="ak"))

    def test_default_base_url(self):
        provider = KlingProvider(ProviderConfig(api_key="ak,sk"))
        assert provider.base_url == DEFAULT_BASE_URL


class TestToken:
    """Bearer JWT construction."""

    def test_claims(self):
        token = create_token("ak", "sk", now=1_700_000_000)
        claims = jwt.decode(
            token,
            "sk",
            algorithms=["HS256"],
            options={"verify_exp": False, "verify_nbf": False},
        )
        assert claims == {"iss": "ak", "exp": 1_700_001_800, "nbf": 1_699_999_995}

    def test_header(self):
        header = jwt.get_unverified_header(create_token("ak", "sk"))
        assert header["alg"] == "HS256"
        assert header["typ"] == "JWT"

    def test_provider_token_verifies_now(self):
        provider = make_provider()
        claims = jwt.decode(provider.create_token(), "sk", algorithms=["HS256"])
        assert claims["iss"] == "ak"

    def test_missing_secret_fails(self):
        with pytest.raises(VidgenError):
            create_token("ak", "")


class TestTranslation:
    """Canonical request -> Kling payload."""

    @pytest.mark.parametrize(
        "width,height,expected",
        [
            (1920, 1080, "16:9"),
            (1280, 720, "16:9"),
            (1080, 1920, "9:16"),
            (720, 1280, "9:16"),
            (1024, 1024, "1:1"),
            (1500, 1000, "1:1"),   # exactly 1.5 stays square
            (700, 1000, "1:1"),    # exactly 0.7 stays square
            (0, 0, "1:1"),
        ],
    )
    def test_aspect_ratio(self, width, height, expected):
        assert aspect_ratio(width, height) == expected

    def test_text_to_video_payload(self):
        provider = make_provider()
        payload = provider.build_payload(
            GenerationRequest(prompt="birds", duration=10.0, width=1920, height=1080)
        )
        assert payload.mode == "txt2video"
        assert payload.duration == "10"
        assert payload.aspect_ratio == "16:9"
        assert payload.model == "kling-v2-master"
        assert payload.image is None

    def test_image_to_video_payload(self):
        provider = make_provider()
        payload = provider.build_payload(
            GenerationRequest(image="https://img.test/a.png", duration=5.0, width=512, height=512,
                              model="kling-v1")
        )
        assert payload.mode == "img2video"
        assert payload.duration == "5"
        assert payload.model == "kling-v1"

    def test_metadata_mode_passthrough(self):
        provider = make_provider()
        req = GenerationRequest(prompt="x", duration=5.0, width=1, height=1, metadata={"mode": "pro"})
        assert provider.build_payload(req).mode == "pro"

    def test_typed_options_win_over_metadata(self):
        provider = make_provider()
        req = GenerationRequest(
            prompt="x", duration=5.0, width=1, height=1,
            metadata={"mode": "pro"},
            options=KlingOptions(mode="std", cfg_scale=0.7),
        )
        payload = provider.build_payload(req)
        assert payload.mode == "std"
        assert payload.cfg_scale == 0.7


class TestValidation:
    """Kling-specific request rules."""

    @pytest.mark.parametrize("duration", [5.0, 10.0])
    def test_supported_durations(self, duration):
        make_provider().validate_request(GenerationRequest(prompt="x", duration=duration))

    @pytest.mark.parametrize("duration", [1.0, 4.9, 5.5, 7.0, 9.99, 15.0])
    def test_other_durations_rejected(self, duration):
        with pytest.raises(ValidationError) as exc:
            make_provider().validate_request(GenerationRequest(prompt="x", duration=duration))
        assert exc.value.field == "duration"

    def test_unknown_model_rejected(self):
        with pytest.raises(ValidationError) as exc:
            make_provider().validate_request(GenerationRequest(prompt="x", duration=5.0, model="sora-2"))
        assert exc.value.field == "model"

    def test_supported_models_is_a_copy(self):
        provider = make_provider()
        models = provider.supported_models()
        models.append("bogus")
        assert "bogus" not in provider.supported_models()


class TestStatusMapping:
    """Kling task vocabulary -> TaskStatus."""

    @pytest.mark.parametrize(
        "vendor,expected",
        [
            ("submitted", TaskStatus.QUEUED),
            ("queued", TaskStatus.QUEUED),
            ("processing", TaskStatus.PROCESSING),
            ("succeed", TaskStatus.SUCCEEDED),
            ("failed", TaskStatus.FAILED),
            ("succeeded", TaskStatus.QUEUED),
            ("", TaskStatus.QUEUED),
            ("paused", TaskStatus.QUEUED),
        ],
    )
    def test_map_status(self, vendor, expected):
        assert map_status(vendor) == expected


class TestCreateGeneration:
    """POST /api/open/v1/video/generation"""

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"code": 0, "message": "ok", "data": {"task_id": "task-123"}})

        provider = make_provider(handler)
        resp = await provider.create_generation(
            GenerationRequest(prompt="birds", duration=5.0, width=1280, height=720)
        )

        assert resp.task_id == "task-123"
        assert resp.status == TaskStatus.QUEUED

        request = seen["request"]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/api/open/v1/video/generation"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["User-Agent"] == "vidgen-sdk/1.0"

        token = request.headers["Authorization"].removeprefix("Bearer ")
        assert jwt.decode(token, "sk", algorithms=["HS256"])["iss"] == "ak"

        body = json.loads(request.content)
        assert body == {
            "prompt": "birds",
            "mode": "txt2video",
            "duration": "5",
            "aspect_ratio": "16:9",
            "model": "kling-v2-master",
        }

    @pytest.mark.asyncio
    async def test_vendor_error_becomes_api_error(self):
        def handler(request):
            return httpx.Response(200, json={"code": 1201, "message": "invalid parameter"})

        with pytest.raises(APIError) as exc:
            await make_provider(handler).create_generation(GenerationRequest(prompt="x", duration=5.0))

        assert exc.value.code == 1201
        assert exc.value.message == "invalid parameter"
        assert exc.value.provider == "Kling"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,error_type",
        [
            (1002, AuthenticationFailedError),
            (1302, RateLimitExceededError),
            (1102, InsufficientQuotaError),
            (1201, InvalidRequestError),
            (1301, InvalidRequestError),
        ],
    )
    async def test_specific_vendor_codes(self, code, error_type):
        def handler(request):
            return httpx.Response(200, json={"code": code, "message": "nope"})

        with pytest.raises(error_type):
            await make_provider(handler).create_generation(GenerationRequest(prompt="x", duration=5.0))

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError):
            await make_provider(handler).create_generation(GenerationRequest(prompt="x", duration=5.0))

    @pytest.mark.asyncio
    async def test_non_json_error_page_uses_http_status(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        with pytest.raises(APIError) as exc:
            await make_provider(handler).create_generation(GenerationRequest(prompt="x", duration=5.0))
        assert exc.value.code == 502

    @pytest.mark.asyncio
    async def test_non_json_success_is_local_error(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        with pytest.raises(VidgenError) as exc:
            await make_provider(handler).create_generation(GenerationRequest(prompt="x", duration=5.0))
        assert not isinstance(exc.value, APIError)


class TestGetGeneration:
    """GET /api/open/v1/video/generation/{task_id}"""

    @pytest.mark.asyncio
    async def test_succeeded_with_video(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json={
                "code": 0,
                "message": "ok",
                "data": {
                    "id": "task-123",
                    "status": "succeed",
                    "task_result": {
                        "videos": [
                            {"id": "v1", "url": "https://cdn.test/v1.mp4", "duration": "5.1"},
                            {"id": "v2", "url": "https://cdn.test/v2.mp4", "duration": "5.0"},
                        ]
                    },
                },
            })

        result = await make_provider(handler).get_generation("task-123")

        assert seen["url"] == f"{BASE_URL}/api/open/v1/video/generation/task-123"
        assert result.task_id == "task-123"
        assert result.status == TaskStatus.SUCCEEDED
        assert result.url == "https://cdn.test/v1.mp4"
        assert result.format == "mp4"
        assert result.metadata.duration == pytest.approx(5.1)
        assert result.metadata.format == "mp4"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_unparsable_duration_leaves_metadata_unset(self):
        def handler(request):
            return httpx.Response(200, json={
                "code": 0,
                "data": {
                    "id": "task-123",
                    "status": "succeed",
                    "task_result": {"videos": [{"url": "https://cdn.test/v1.mp4", "duration": "five"}]},
                },
            })

        result = await make_provider(handler).get_generation("task-123")

        assert result.status == TaskStatus.SUCCEEDED
        assert result.url == "https://cdn.test/v1.mp4"
        assert result.metadata is None

    @pytest.mark.asyncio
    async def test_processing_has_no_url(self):
        def handler(request):
            return httpx.Response(200, json={"code": 0, "data": {"id": "task-123", "status": "processing"}})

        result = await make_provider(handler).get_generation("task-123")

        assert result.status == TaskStatus.PROCESSING
        assert result.url is None
        assert result.metadata is None

    @pytest.mark.asyncio
    async def test_failed_task_carries_error(self):
        def handler(request):
            return httpx.Response(200, json={
                "code": 0,
                "data": {"task_id": "task-9", "task_status": "failed", "task_status_msg": "content policy"},
            })

        result = await make_provider(handler).get_generation("task-9")

        assert result.task_id == "task-9"
        assert result.status == TaskStatus.FAILED
        assert result.error.code == TASK_ERROR_NO_CODE
        assert result.error.message == "content policy"
        assert result.url is None

    @pytest.mark.asyncio
    async def test_missing_task(self):
        def handler(request):
            return httpx.Response(200, json={"code": 1203, "message": "task not found"})

        with pytest.raises(TaskNotFoundError) as exc:
            await make_provider(handler).get_generation("nope")
        assert exc.value.code == 1203
