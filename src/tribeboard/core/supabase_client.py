"""Supabase-backed collaborators for result lookups and object storage.

The pipeline talks to two external capabilities through small protocols:

- :class:`TribeLookup` — read a user result joined to its tribe, and record
  the generated image URL on the result.
- :class:`ObjectStore` — put bytes under a key, build a public URL, remove
  keys.

The concrete implementations wrap the synchronous ``supabase`` client.
Every client call runs in a worker thread via :func:`asyncio.to_thread` so the
request coroutine only suspends at I/O boundaries.  Any exception raised by the
client is wrapped in :class:`CollaboratorError` carrying the client's own
message; translating that into the response taxonomy is the caller's job.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from supabase import Client, create_client

from tribeboard.core.config import TribeboardConfig
from tribeboard.core.errors import CollaboratorError, ConfigurationError
from tribeboard.core.models import TribePromptRecord

logger = logging.getLogger(__name__)

RESULTS_TABLE = "user_results"
TRIBE_PROMPT_SELECT = "id, tribe_id, tribes!inner(name, image_generation_prompt)"


class TribeLookup(Protocol):
    async def fetch_tribe_prompt(self, result_id: str) -> TribePromptRecord | None: ...

    async def record_generated_image(self, result_id: str, image_url: str) -> None: ...


class ObjectStore(Protocol):
    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool,
        cache_control: str | None = None,
    ) -> str: ...

    async def public_url(self, bucket: str, key: str) -> str: ...

    async def remove(self, bucket: str, keys: list[str]) -> None: ...


def collaborator_message(exc: BaseException) -> str:
    """Extract the human-readable message from a client exception.

    postgrest errors expose ``.message``; storage errors are raised with a
    response dict as their first argument.
    """
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    if exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]
        return str(payload.get("message") or payload.get("error") or payload)
    return str(exc) or exc.__class__.__name__


def get_supabase(config: TribeboardConfig) -> Client:
    """Create a service-role Supabase client from configuration.

    Raises:
        ConfigurationError: If the URL or service role key is missing.
    """
    if not config.supabase_url or not config.supabase_service_role_key:
        logger.error("Missing Supabase configuration")
        raise ConfigurationError("Server configuration error")

    client = create_client(config.supabase_url, config.supabase_service_role_key)
    logger.info("Supabase client initialized successfully")
    return client


class SupabaseTribeLookup:
    """Reads tribe prompts from ``user_results`` joined to ``tribes``."""

    def __init__(self, client: Client):
        self._client = client

    async def fetch_tribe_prompt(self, result_id: str) -> TribePromptRecord | None:
        try:
            response = await asyncio.to_thread(self._select_tribe_prompt, result_id)
        except Exception as e:
            raise CollaboratorError(collaborator_message(e)) from e

        # postgrest returns None from maybe_single() when no row matches
        row = response.data if response is not None else None
        if not row:
            return None

        tribe = row.get("tribes") or {}
        if isinstance(tribe, list):
            tribe = tribe[0] if tribe else {}

        return TribePromptRecord(
            result_id=row.get("id", result_id),
            tribe_id=row.get("tribe_id"),
            tribe_name=tribe.get("name") or "",
            image_generation_prompt=tribe.get("image_generation_prompt"),
        )

    async def record_generated_image(self, result_id: str, image_url: str) -> None:
        try:
            await asyncio.to_thread(self._update_generated_image, result_id, image_url)
        except Exception as e:
            raise CollaboratorError(collaborator_message(e)) from e

    def _select_tribe_prompt(self, result_id: str) -> Any:
        return (
            self._client.table(RESULTS_TABLE)
            .select(TRIBE_PROMPT_SELECT)
            .eq("id", result_id)
            .maybe_single()
            .execute()
        )

    def _update_generated_image(self, result_id: str, image_url: str) -> Any:
        return (
            self._client.table(RESULTS_TABLE)
            .update({"generated_image_url": image_url})
            .eq("id", result_id)
            .execute()
        )


class SupabaseObjectStore:
    """Supabase Storage buckets behind the :class:`ObjectStore` protocol."""

    def __init__(self, client: Client):
        self._client = client

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool,
        cache_control: str | None = None,
    ) -> str:
        file_options = {"content-type": content_type, "upsert": "true" if upsert else "false"}
        if cache_control:
            file_options["cache-control"] = cache_control

        try:
            await asyncio.to_thread(
                self._client.storage.from_(bucket).upload,
                path=key,
                file=data,
                file_options=file_options,
            )
        except Exception as e:
            logger.error(f"Failed to upload file to {bucket}/{key}: {collaborator_message(e)}")
            raise CollaboratorError(collaborator_message(e)) from e
        return key

    async def public_url(self, bucket: str, key: str) -> str:
        # URL building is local to the client; no round trip
        return self._client.storage.from_(bucket).get_public_url(key)

    async def remove(self, bucket: str, keys: list[str]) -> None:
        try:
            await asyncio.to_thread(self._client.storage.from_(bucket).remove, keys)
        except Exception as e:
            logger.error(f"Failed to remove {keys} from {bucket}: {collaborator_message(e)}")
            raise CollaboratorError(collaborator_message(e)) from e
