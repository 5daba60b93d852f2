"""Core pipeline components.

The components, leaves first:

1. **Payload codec** (codec.py): base64 / data-URI decoding
2. **Request validation** (validation.py): field, UUID, MIME, and size checks
3. **Prompt resolution** (prompts.py): result id to tribe prompt
4. **Storage** (storage.py): key naming, uploads, public URLs, deletes
5. **URL normalization** (urls.py): internal-to-public host rewriting
6. **Generation** (generation.py): batch generation with rollback

Collaborators live in supabase_client.py; configuration in config.py; the
error taxonomy in errors.py.
"""

from tribeboard.core.config import TribeboardConfig, config
from tribeboard.core.errors import ErrorCode, PipelineError

__all__ = [
    "ErrorCode",
    "PipelineError",
    "TribeboardConfig",
    "config",
]
