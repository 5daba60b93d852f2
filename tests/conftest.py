"""Shared pytest fixtures for Tribeboard tests."""

from __future__ import annotations

import base64
import io
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from tribeboard.api.main import create_app
from tribeboard.core.config import TribeboardConfig
from tribeboard.core.errors import CollaboratorError
from tribeboard.core.models import TribePromptRecord

RESULT_ID = "5b6f3c1e-8d2a-4c7b-9e1f-2a3b4c5d6e7f"
SUBCULTURE_ID = "0f9e8d7c-6b5a-4321-8fed-cba987654321"
HERITAGE_PROMPT = "Transform the person into the Heritage Heir/Heiress..."
FIXED_NOW = 1_700_000_000.123
FIXED_NOW_MS = 1_700_000_000_123


class FakeObjectStore:
    """In-memory object store that builds URLs against the internal gateway.

    Attributes:
        objects: ``(bucket, key) -> (data, content_type)`` for stored objects.
        put_calls: Every put call as a dict of its arguments.
        removed: Every ``(bucket, key)`` passed to remove.
        put_error: Message to fail every put with.
        fail_key: Predicate selecting keys whose put fails.
        remove_error: Message to fail every remove with.
    """

    base_url = "http://kong:8000/storage/v1/object/public"

    def __init__(self):
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.put_calls: list[dict] = []
        self.removed: list[tuple[str, str]] = []
        self.put_error: str | None = None
        self.fail_key: Callable[[str], bool] | None = None
        self.remove_error: str | None = None

    async def put(self, bucket, key, data, *, content_type, upsert, cache_control=None):
        self.put_calls.append(
            {
                "bucket": bucket,
                "key": key,
                "content_type": content_type,
                "upsert": upsert,
                "cache_control": cache_control,
            }
        )
        if self.put_error is not None:
            raise CollaboratorError(self.put_error)
        if self.fail_key is not None and self.fail_key(key):
            raise CollaboratorError(f"Simulated failure for {key}")
        if not upsert and (bucket, key) in self.objects:
            raise CollaboratorError("The resource already exists")
        self.objects[(bucket, key)] = (data, content_type)
        return key

    async def public_url(self, bucket, key):
        return f"{self.base_url}/{bucket}/{key}"

    async def remove(self, bucket, keys):
        if self.remove_error is not None:
            raise CollaboratorError(self.remove_error)
        for key in keys:
            self.removed.append((bucket, key))
            self.objects.pop((bucket, key), None)


class FakeTribeLookup:
    """In-memory result/tribe lookup.

    Attributes:
        records: ``result_id -> TribePromptRecord``.
        fetch_calls: Result ids passed to ``fetch_tribe_prompt``.
        recorded: ``result_id -> image_url`` written by ``record_generated_image``.
        fetch_error: Message to fail every fetch with.
        record_error: Message to fail every record call with.
    """

    def __init__(self, records: dict[str, TribePromptRecord] | None = None):
        self.records = dict(records or {})
        self.fetch_calls: list[str] = []
        self.recorded: dict[str, str] = {}
        self.fetch_error: str | None = None
        self.record_error: str | None = None

    async def fetch_tribe_prompt(self, result_id):
        self.fetch_calls.append(result_id)
        if self.fetch_error is not None:
            raise CollaboratorError(self.fetch_error)
        return self.records.get(result_id)

    async def record_generated_image(self, result_id, image_url):
        if self.record_error is not None:
            raise CollaboratorError(self.record_error)
        self.recorded[result_id] = image_url


def make_record(result_id: str, tribe_name: str, prompt: str | None) -> TribePromptRecord:
    return TribePromptRecord(
        result_id=result_id,
        tribe_id=f"tribe-{tribe_name.lower().replace(' ', '-')}",
        tribe_name=tribe_name,
        image_generation_prompt=prompt,
    )


def encode_image(fmt: str = "JPEG", size: tuple[int, int] = (8, 8), mode: str = "RGB") -> bytes:
    """Render a small solid image with Pillow and return its encoded bytes."""
    buffer = io.BytesIO()
    color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def test_config() -> TribeboardConfig:
    """Configuration pointing at a local stack behind the internal gateway."""
    return TribeboardConfig(
        _env_file=None,
        supabase_url="http://kong:8000",
        supabase_service_role_key="test-service-role-key",
        public_supabase_url="http://localhost:54321",
    )


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def tribe_lookup() -> FakeTribeLookup:
    return FakeTribeLookup({RESULT_ID: make_record(RESULT_ID, "Heritage Heiress", HERITAGE_PROMPT)})


@pytest.fixture
def fixed_clock() -> Callable[[], float]:
    return lambda: FIXED_NOW


@pytest.fixture
def test_app(test_config, object_store, tribe_lookup, fixed_clock):
    return create_app(
        test_config,
        object_store=object_store,
        tribe_lookup=tribe_lookup,
        clock=fixed_clock,
    )


@pytest.fixture
def test_client(test_app) -> TestClient:
    """TestClient over an app wired to the in-memory collaborators."""
    return TestClient(test_app)


@pytest.fixture
def jpeg_bytes() -> bytes:
    return encode_image("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return encode_image("PNG", mode="RGBA")


@pytest.fixture
def jpeg_data_uri(jpeg_bytes: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode("ascii")


@pytest.fixture
def png_base64(png_bytes: bytes) -> str:
    return base64.b64encode(png_bytes).decode("ascii")
