"""Tests for tribeboard.core.generation — passthrough generator and batch pipeline."""

from __future__ import annotations

import asyncio
import io

import pytest
from conftest import FIXED_NOW_MS, HERITAGE_PROMPT, RESULT_ID, encode_image, make_record
from PIL import Image

from tribeboard.core.errors import (
    ConfigurationError,
    DecodeError,
    DependencyError,
    UploadError,
)
from tribeboard.core.generation import GenerationPipeline, PassthroughImageGenerator
from tribeboard.core.models import GenerationRequest
from tribeboard.core.prompts import PromptResolver
from tribeboard.core.storage import StorageUploader

BUCKET = "generated-images"


class FailingGenerator:
    content_type = "image/jpeg"
    extension = "jpg"

    async def generate(self, photo, prompt):
        raise RuntimeError("model backend unavailable")


@pytest.fixture
def pipeline(object_store, tribe_lookup, fixed_clock) -> GenerationPipeline:
    return GenerationPipeline(
        resolver=PromptResolver(tribe_lookup),
        generator=PassthroughImageGenerator(),
        uploader=StorageUploader(object_store, public_base="http://localhost:54321", clock=fixed_clock),
        lookup=tribe_lookup,
        bucket=BUCKET,
    )


def _request(photo: bytes, **overrides) -> GenerationRequest:
    values = {"result_id": RESULT_ID, "photo": photo}
    values.update(overrides)
    return GenerationRequest(**values)


class TestPassthroughImageGenerator:
    """Test the Pillow-backed passthrough generator."""

    def test_reencodes_png_as_jpeg(self, png_bytes):
        out = asyncio.run(PassthroughImageGenerator().generate(png_bytes, "prompt"))
        with Image.open(io.BytesIO(out)) as image:
            assert image.format == "JPEG"
            assert image.mode == "RGB"
            assert image.size == (8, 8)

    def test_non_image_bytes_raise(self):
        with pytest.raises(DecodeError, match="valid base64 encoded image"):
            asyncio.run(PassthroughImageGenerator().generate(b"definitely not an image", "p"))


class TestGenerationPipeline:
    """Test batch generation, storage, and rollback."""

    def test_uses_tribe_prompt(self, pipeline, jpeg_bytes, tribe_lookup):
        images = asyncio.run(pipeline.run(_request(jpeg_bytes)))
        assert len(images) == 1
        assert images[0].prompt == HERITAGE_PROMPT
        assert tribe_lookup.fetch_calls == [RESULT_ID]

    def test_explicit_prompt_skips_lookup(self, pipeline, jpeg_bytes, tribe_lookup):
        images = asyncio.run(pipeline.run(_request(jpeg_bytes, explicit_prompt="Custom prompt")))
        assert images[0].prompt == "Custom prompt"
        assert tribe_lookup.fetch_calls == []

    def test_batch_keys_are_distinct(self, pipeline, jpeg_bytes, object_store):
        images = asyncio.run(pipeline.run(_request(jpeg_bytes, image_count=3)))
        assert [image.index for image in images] == [0, 1, 2]
        assert [image.key for image in images] == [
            f"{RESULT_ID}-{FIXED_NOW_MS}-{i}.jpg" for i in range(3)
        ]
        assert len(object_store.objects) == 3
        assert all(call["upsert"] is False for call in object_store.put_calls)
        assert all(call["content_type"] == "image/jpeg" for call in object_store.put_calls)

    def test_urls_are_public(self, pipeline, jpeg_bytes):
        images = asyncio.run(pipeline.run(_request(jpeg_bytes)))
        assert images[0].url.startswith("http://localhost:54321/storage/v1/object/public/")
        assert images[0].url.endswith(images[0].key)

    def test_single_image_recorded_on_result(self, pipeline, jpeg_bytes, tribe_lookup):
        images = asyncio.run(pipeline.run(_request(jpeg_bytes)))
        assert tribe_lookup.recorded == {RESULT_ID: images[0].url}

    def test_batch_not_recorded_on_result(self, pipeline, jpeg_bytes, tribe_lookup):
        asyncio.run(pipeline.run(_request(jpeg_bytes, image_count=2)))
        assert tribe_lookup.recorded == {}

    def test_partial_failure_rolls_back(self, pipeline, jpeg_bytes, object_store):
        """A failed image removes every image this batch already stored."""
        object_store.fail_key = lambda key: key.endswith("-2.jpg")
        with pytest.raises(UploadError, match="Simulated failure"):
            asyncio.run(pipeline.run(_request(jpeg_bytes, image_count=3)))
        assert object_store.objects == {}
        assert sorted(key for _, key in object_store.removed) == [
            f"{RESULT_ID}-{FIXED_NOW_MS}-0.jpg",
            f"{RESULT_ID}-{FIXED_NOW_MS}-1.jpg",
        ]

    def test_rollback_delete_failure_keeps_original_error(self, pipeline, jpeg_bytes, object_store):
        object_store.fail_key = lambda key: key.endswith("-1.jpg")
        object_store.remove_error = "storage offline"
        with pytest.raises(UploadError):
            asyncio.run(pipeline.run(_request(jpeg_bytes, image_count=2)))

    def test_missing_prompt_uploads_nothing(self, pipeline, jpeg_bytes, object_store, tribe_lookup):
        tribe_lookup.records[RESULT_ID] = make_record(RESULT_ID, "Heritage Heiress", None)
        with pytest.raises(ConfigurationError):
            asyncio.run(pipeline.run(_request(jpeg_bytes)))
        assert object_store.put_calls == []

    def test_record_failure_rolls_back(self, pipeline, jpeg_bytes, object_store, tribe_lookup):
        tribe_lookup.record_error = "update denied"
        with pytest.raises(DependencyError, match="Failed to update user result: update denied"):
            asyncio.run(pipeline.run(_request(jpeg_bytes)))
        assert object_store.objects == {}

    def test_generator_failure_wrapped(self, object_store, tribe_lookup, fixed_clock, jpeg_bytes):
        pipeline = GenerationPipeline(
            resolver=PromptResolver(tribe_lookup),
            generator=FailingGenerator(),
            uploader=StorageUploader(object_store, clock=fixed_clock),
            lookup=tribe_lookup,
            bucket=BUCKET,
        )
        with pytest.raises(DependencyError, match="model backend unavailable"):
            asyncio.run(pipeline.run(_request(jpeg_bytes)))
        assert object_store.put_calls == []

    def test_unreadable_photo(self, pipeline, object_store):
        with pytest.raises(DecodeError):
            asyncio.run(pipeline.run(_request(b"not an image", image_count=2)))
        assert object_store.objects == {}

    def test_png_selfie_stored_as_jpeg(self, pipeline, object_store):
        images = asyncio.run(pipeline.run(_request(encode_image("PNG", mode="RGBA"))))
        assert images[0].key.endswith(".jpg")
        stored_bytes, content_type = object_store.objects[(BUCKET, images[0].key)]
        assert content_type == "image/jpeg"
        assert stored_bytes[:2] == b"\xff\xd8"
