"""Tribe prompt resolution.

Generation prompts are curated per tribe in the database so operators can
change generation behavior without a redeploy.  A request that does not carry
its own prompt gets the prompt of the tribe its user result was classified
into.
"""

import logging

from tribeboard.core.errors import (
    CollaboratorError,
    ConfigurationError,
    DependencyError,
    NotFoundError,
)
from tribeboard.core.supabase_client import TribeLookup

logger = logging.getLogger(__name__)


class PromptResolver:
    """Looks up the generation prompt for a user result.

    Every failure is terminal for the request; there is no retry and no
    caching.
    """

    def __init__(self, lookup: TribeLookup):
        self.lookup = lookup

    async def resolve(self, result_id: str) -> str:
        """Return the tribe prompt for *result_id*.

        Raises:
            NotFoundError: The user result does not exist.
            ConfigurationError: The tribe has no prompt configured.
            DependencyError: The lookup itself failed.
        """
        try:
            record = await self.lookup.fetch_tribe_prompt(result_id)
        except CollaboratorError as e:
            logger.error(f"Error fetching tribe prompt for {result_id}: {e.message}")
            raise DependencyError(f"Failed to fetch tribe information: {e.message}") from e

        if record is None:
            raise NotFoundError(f"User result not found: {result_id}")

        if not record.image_generation_prompt or not record.image_generation_prompt.strip():
            raise ConfigurationError(
                f"No image generation prompt configured for tribe: {record.tribe_name}"
            )

        logger.info(f"Using prompt for tribe: {record.tribe_name}")
        return record.image_generation_prompt
