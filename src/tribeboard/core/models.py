"""Domain models passed between pipeline components."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UploadRequest:
    """A validated moodboard upload.

    ``declared_size`` is what the client claimed; ``payload`` is the decoded
    image and its length is what the ceiling is enforced against.
    """

    owner_id: str
    file_name: str
    mime_type: str
    declared_size: int
    payload: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class GenerationRequest:
    """A validated selfie generation request."""

    result_id: str
    photo: bytes
    explicit_prompt: str | None = None
    image_count: int = 1


@dataclass(frozen=True)
class TribePromptRecord:
    """Read-only projection of a user result joined to its tribe."""

    result_id: str
    tribe_id: str | None
    tribe_name: str
    image_generation_prompt: str | None


@dataclass(frozen=True)
class StoredObject:
    """An object persisted in storage along with its caller-facing URL."""

    bucket: str
    key: str
    content_type: str
    public_url: str


@dataclass(frozen=True)
class GeneratedImage:
    """One image from a generation batch."""

    url: str
    prompt: str
    key: str
    index: int
