"""Selfie image generation pipeline.

:class:`GenerationPipeline` turns a validated :class:`GenerationRequest` into
a batch of stored images:

1. Resolve the prompt (explicit prompt, otherwise the tribe prompt).
2. Generate and upload every image of the batch concurrently.
3. If any image fails, delete the images of this batch that did persist and
   raise the first failure.  A batch either fully succeeds or leaves nothing
   behind.
4. For single-image requests, record the URL on the user result.

The image model itself sits behind the :class:`ImageGenerator` protocol.  The
bundled :class:`PassthroughImageGenerator` re-encodes the selfie as JPEG,
which keeps the whole flow exercisable without a model backend.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from tribeboard.core.errors import (
    CollaboratorError,
    DecodeError,
    DeleteError,
    DependencyError,
    PipelineError,
)
from tribeboard.core.models import GeneratedImage, GenerationRequest
from tribeboard.core.prompts import PromptResolver
from tribeboard.core.storage import StorageUploader, generated_image_key
from tribeboard.core.supabase_client import TribeLookup

logger = logging.getLogger(__name__)


class ImageGenerator(Protocol):
    content_type: str
    extension: str

    async def generate(self, photo: bytes, prompt: str) -> bytes: ...


class PassthroughImageGenerator:
    """Returns the selfie itself, normalized to an RGB JPEG.

    Args:
        quality: JPEG quality used for the re-encode.
    """

    content_type = "image/jpeg"
    extension = "jpg"

    def __init__(self, quality: int = 90):
        self.quality = quality

    async def generate(self, photo: bytes, prompt: str) -> bytes:
        logger.info(f"Passthrough generation with prompt: {prompt[:50]!r}")
        return await asyncio.to_thread(self._reencode, photo)

    def _reencode(self, photo: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(photo)) as image:
                rgb = image.convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise DecodeError("userPhoto must be a valid base64 encoded image") from e

        buffer = io.BytesIO()
        rgb.save(buffer, format="JPEG", quality=self.quality)
        return buffer.getvalue()


class GenerationPipeline:
    """Generates, stores, and records a batch of selfie images.

    Args:
        resolver: Tribe prompt resolver, used when no explicit prompt is given.
        generator: Image generator collaborator.
        uploader: Storage uploader for the generated images bucket.
        lookup: Result store used to record single-image URLs.
        bucket: Bucket receiving generated images.
    """

    def __init__(
        self,
        *,
        resolver: PromptResolver,
        generator: ImageGenerator,
        uploader: StorageUploader,
        lookup: TribeLookup,
        bucket: str,
    ):
        self.resolver = resolver
        self.generator = generator
        self.uploader = uploader
        self.lookup = lookup
        self.bucket = bucket

    async def run(self, request: GenerationRequest) -> list[GeneratedImage]:
        """Run the full pipeline for *request*.

        Returns:
            Generated images in batch order.

        Raises:
            PipelineError: The first failure of the batch, after rollback.
        """
        if request.explicit_prompt:
            prompt = request.explicit_prompt
            logger.info(f"Using explicit prompt for user result {request.result_id}")
        else:
            prompt = await self.resolver.resolve(request.result_id)

        logger.info(
            f"Generating {request.image_count} image(s) for user result: {request.result_id}"
        )

        now_ms = self.uploader.now_ms()
        outcomes = await asyncio.gather(
            *(
                self._generate_one(request, prompt, index, now_ms)
                for index in range(request.image_count)
            ),
            return_exceptions=True,
        )

        images = [o for o in outcomes if isinstance(o, GeneratedImage)]
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if failures:
            logger.error(
                f"{len(failures)} of {request.image_count} image(s) failed for "
                f"user result {request.result_id}"
            )
            await self._rollback(images)
            raise failures[0]

        if request.image_count == 1:
            await self._record(request.result_id, images)

        logger.info(f"Successfully generated {len(images)} image(s)")
        return images

    async def _generate_one(
        self,
        request: GenerationRequest,
        prompt: str,
        index: int,
        now_ms: int,
    ) -> GeneratedImage:
        try:
            data = await self.generator.generate(request.photo, prompt)
        except PipelineError:
            raise
        except Exception as e:
            logger.exception(f"Image generation failed for index {index}")
            raise DependencyError(f"Image generation failed: {e}") from e

        key = generated_image_key(
            request.result_id, index, self.generator.extension, now_ms=now_ms
        )
        stored = await self.uploader.upload(
            data,
            self.generator.content_type,
            key,
            bucket=self.bucket,
            overwrite=False,
        )
        logger.info(f"Image {index + 1}/{request.image_count} uploaded: {stored.public_url}")
        return GeneratedImage(url=stored.public_url, prompt=prompt, key=stored.key, index=index)

    async def _record(self, result_id: str, images: list[GeneratedImage]) -> None:
        try:
            await self.lookup.record_generated_image(result_id, images[0].url)
        except CollaboratorError as e:
            logger.error(f"Database update error for {result_id}: {e.message}")
            await self._rollback(images)
            raise DependencyError(f"Failed to update user result: {e.message}") from e

    async def _rollback(self, images: list[GeneratedImage]) -> None:
        for image in images:
            try:
                await self.uploader.delete(image.key, bucket=self.bucket)
            except DeleteError as e:
                # the original failure is what the caller sees
                logger.warning(f"Rollback could not delete {image.key}: {e.message}")
