"""
Storage abstraction for Supabase storage buckets and in-memory testing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from supabase import Client, ClientOptions, create_client


class StorageClient(Protocol):
    """Defines the operations the API needs from blob storage."""

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        ...

    def remove(self, bucket: str, paths: list[str]) -> None:
        ...

    def get_public_url(self, bucket: str, path: str) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage/v1/object/public"
    stored_objects: dict = None
    # Substrings of object paths whose upload should fail.
    fail_uploads_matching: list[str] = field(default_factory=list)
    fail_removals: bool = False

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        if any(marker in path for marker in self.fail_uploads_matching):
            raise IOError(f"simulated upload failure for {bucket}/{path}")
        key = (bucket, path)
        if key in self.stored_objects:
            raise IOError(f"object already exists: {bucket}/{path}")
        self.stored_objects[key] = (bytes(data), content_type)

    def remove(self, bucket: str, paths: list[str]) -> None:
        if self.fail_removals:
            raise IOError(f"simulated removal failure in {bucket}")
        for path in paths:
            self.stored_objects.pop((bucket, path), None)

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"

    def get_bytes(self, bucket: str, path: str) -> bytes:
        stored = self.stored_objects.get((bucket, path))
        if stored is None:
            raise FileNotFoundError(f"{bucket}/{path}")
        return stored[0]

    def reset(self) -> None:
        self.stored_objects.clear()
        self.fail_uploads_matching.clear()
        self.fail_removals = False


@dataclass
class SupabaseStorageClient:
    """
    Supabase storage buckets. Uploads run as the given user when an
    access token is provided, so bucket policies keyed on the owner apply.
    """

    url: str
    key: str
    access_token: Optional[str] = None

    def __post_init__(self):
        options = ClientOptions()
        if self.access_token:
            options.headers["Authorization"] = f"Bearer {self.access_token}"
        self._client: Client = create_client(self.url, self.key, options=options)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        self._client.storage.from_(bucket).upload(
            path, data, {"content-type": content_type}
        )

    def remove(self, bucket: str, paths: list[str]) -> None:
        self._client.storage.from_(bucket).remove(paths)

    def get_public_url(self, bucket: str, path: str) -> str:
        return self._client.storage.from_(bucket).get_public_url(path)


def file_extension(filename: str, default: str) -> str:
    """Extension of ``filename`` without the dot, or ``default`` if it has none."""
    _, dot, ext = (filename or "").rpartition(".")
    return ext.lower() if dot and ext else default


def timestamp_ms() -> int:
    return int(time.time() * 1000)
