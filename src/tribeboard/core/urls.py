"""Storage URL helpers.

All functions here are pure string transforms: they never read the
environment and never touch the network.
"""

from __future__ import annotations

from urllib.parse import urlsplit

INTERNAL_STORAGE_BASE = "http://kong:8000"


def normalize_public_url(
    raw_url: str,
    public_base: str | None = None,
    internal_base: str = INTERNAL_STORAGE_BASE,
) -> str:
    """Rewrite an internally routed storage URL to an externally reachable one.

    The local Supabase stack builds public URLs against its internal gateway
    (``http://kong:8000``), which browsers cannot reach.  When *public_base*
    is given, the literal *internal_base* prefix is replaced with it.
    Without an override the URL passes through unchanged.

    Args:
        raw_url: URL produced by the storage client.
        public_base: Externally reachable base URL, or ``None``.
        internal_base: Internal host prefix to replace.

    Returns:
        The rewritten URL.

    Examples:
        >>> normalize_public_url(
        ...     "http://kong:8000/storage/v1/object/public/b/k.jpg",
        ...     "http://localhost:54321",
        ... )
        'http://localhost:54321/storage/v1/object/public/b/k.jpg'
    """
    if not public_base or not internal_base:
        return raw_url
    return raw_url.replace(internal_base.rstrip("/"), public_base.rstrip("/"), 1)


def extract_storage_path(url: str) -> str | None:
    """Return the object key from a Supabase Storage URL.

    The key is everything after the bucket segment that follows ``public``
    or ``authenticated``, e.g. ``.../object/public/generated-images/a/b.jpg``
    yields ``a/b.jpg``.  Returns ``None`` when the URL has no such segment.
    """
    try:
        path = urlsplit(url).path
    except ValueError:
        return None

    parts = path.split("/")
    bucket_index = next(
        (i for i, part in enumerate(parts) if part in ("public", "authenticated")),
        -1,
    )
    if bucket_index == -1 or bucket_index >= len(parts) - 2:
        return None
    return "/".join(parts[bucket_index + 2 :])
