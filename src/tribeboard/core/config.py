"""Configuration management for the Tribeboard image pipeline.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the TRIBEBOARD_ prefix,
allowing deployment topologies (local stack vs. hosted project) to differ without
code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (TRIBEBOARD_* prefix)
2. .env file in the project root
3. Default values defined in TribeboardConfig

Example .env file:
    TRIBEBOARD_SUPABASE_URL=http://kong:8000
    TRIBEBOARD_SUPABASE_SERVICE_ROLE_KEY=service-role-key
    TRIBEBOARD_PUBLIC_SUPABASE_URL=http://localhost:54321
    TRIBEBOARD_MAX_UPLOAD_BYTES=10485760

Global Configuration Instance
------------------------------
A global `config` instance is created at module import time and used by the
``tribeboard`` CLI.  The FastAPI application factory accepts an explicit
configuration object instead, so tests and embedders never depend on ambient
process state.

Storage Host Rewriting
----------------------
When the storage service is reached through an internal gateway (the local
stack exposes it as ``http://kong:8000``), public URLs built by the client
point at a host the browser cannot reach.  ``public_base_url`` names the
externally reachable base that replaces ``internal_storage_base`` in every URL
handed back to callers.

See Also
--------
- tribeboard.core.urls: The pure rewrite function
- TribeboardConfig: Full configuration class documentation
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MIME_TYPES = ["image/jpeg", "image/png", "image/webp"]
DEFAULT_CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


class TribeboardConfig(BaseSettings):
    """Main configuration for the Tribeboard image pipeline.

    Attributes
    ----------
    Supabase Settings:
        supabase_url : str | None
            Base URL the server uses to reach Supabase (may be internal)
        supabase_service_role_key : str | None
            Service role key; required for storage writes and result lookups
        public_supabase_url : str | None
            Externally reachable base URL used when rewriting storage URLs
        internal_storage_base : str
            Internal host prefix that is replaced in public URLs

    Storage Settings:
        moodboard_bucket : str
            Bucket receiving curated moodboard reference images
        generated_images_bucket : str
            Bucket receiving generated selfie images
        cache_control : str
            Cache-Control max-age (seconds) sent with moodboard uploads

    Validation Settings:
        max_upload_bytes : int
            Size ceiling for uploaded payloads (10 MiB)
        allowed_mime_types : list[str]
            Accepted moodboard MIME types
        max_images_per_request : int
            Upper bound for ``numberOfImages`` on generation requests

    Generation Settings:
        jpeg_quality : int
            Quality used when the passthrough generator re-encodes selfies

    HTTP Settings:
        cors_allow_origins : list[str]
            Origins allowed by the CORS middleware
        cors_allow_headers : list[str]
            Request headers allowed from the front-end
        server_host : str
            uvicorn bind address
        server_port : int
            uvicorn port (1024-65535)
        log_level : str
            Root logging level for the CLI
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRIBEBOARD_",
        case_sensitive=False,
    )

    # Supabase settings
    supabase_url: str | None = Field(
        default=None,
        description="Base URL used by the server to reach Supabase",
    )
    supabase_service_role_key: str | None = Field(
        default=None,
        description="Service role key for storage and database access",
    )
    public_supabase_url: str | None = Field(
        default=None,
        description="Externally reachable Supabase URL for rewritten storage links",
    )
    internal_storage_base: str = Field(
        default="http://kong:8000",
        description="Internal gateway prefix replaced in public storage URLs",
    )

    # Storage settings
    moodboard_bucket: str = Field(default="moodboard_pictures")
    generated_images_bucket: str = Field(default="generated-images")
    cache_control: str = Field(
        default="3600",
        description="Cache-Control max-age for moodboard uploads",
    )

    # Validation settings
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum accepted payload size in bytes",
        ge=1,
    )
    allowed_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES),
        description="MIME types accepted for moodboard uploads",
    )
    max_images_per_request: int = Field(
        default=10,
        description="Maximum numberOfImages accepted by generate-image",
        ge=1,
    )

    # Generation settings
    jpeg_quality: int = Field(default=90, ge=1, le=95)

    # HTTP settings
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    cors_allow_headers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ALLOW_HEADERS),
    )
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: str = Field(default="INFO")

    @property
    def public_base_url(self) -> str | None:
        """Base URL that replaces the internal storage host in returned URLs.

        Falls back to ``supabase_url`` when no dedicated public URL is set,
        which is a no-op rewrite for hosted projects.
        """
        return self.public_supabase_url or self.supabase_url


# Global configuration instance used by the CLI entry point.
config = TribeboardConfig()
