# catalog/core/storage.py
import base64
import binascii
import re
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Protocol

from supabase import Client

from catalog.core.errors import ValidationError

DATA_URI_RE = re.compile(r"^data:(?P<content_type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.S)

EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/avif": "avif",
    "image/svg+xml": "svg",
}


@dataclass(frozen=True)
class ImagePayload:
    """Raw image content waiting to be uploaded."""

    content_type: str
    data: bytes
    filename: str | None = None

    @classmethod
    def from_data_uri(cls, value: str) -> "ImagePayload":
        """
        Decode a `data:<type>;base64,<payload>` string.

        Raises:
            ValidationError: if the string is not a base64 data URI.
        """
        match = DATA_URI_RE.match(value.strip())
        if match is None:
            raise ValidationError("Image data must be a base64 data URI")
        try:
            data = base64.b64decode(match.group("data"), validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Image data is not valid base64")
        return cls(content_type=match.group("content_type").lower(), data=data)

    @property
    def extension(self) -> str:
        if self.content_type in EXTENSIONS:
            return EXTENSIONS[self.content_type]
        return self.content_type.rsplit("/", 1)[-1].split("+", 1)[0] or "bin"


@dataclass(frozen=True)
class StoredImage:
    """An uploaded image: public URL plus the handle needed to delete it."""

    url: str
    storage_id: str


class ObjectStore(Protocol):
    """Remote image storage used by the product service."""

    def upload(self, payload: ImagePayload, folder: str) -> StoredImage: ...

    def delete(self, storage_id: str) -> None: ...

    def ping(self) -> None: ...


def generate_object_path(folder: str, ext: str) -> str:
    """
    Build a unique object path inside the bucket.

    Path pattern:
        <folder>/<epoch millis>-<uuid4>.<ext>
    """
    return f"{folder.strip('/')}/{int(time.time() * 1000)}-{uuid.uuid4().hex}.{ext}"


class SupabaseObjectStore:
    """
    ObjectStore backed by a Supabase Storage bucket.

    The storage id of an image is its object path inside the bucket.
    The client is created on first use, so reads never need storage
    credentials.
    """

    def __init__(self, client_factory: Callable[[], Client], bucket: str):
        self._client_factory = client_factory
        self.bucket = bucket

    @property
    def client(self) -> Client:
        return self._client_factory()

    def upload(self, payload: ImagePayload, folder: str) -> StoredImage:
        path = generate_object_path(folder, payload.extension)
        bucket = self.client.storage.from_(self.bucket)
        bucket.upload(
            path,
            payload.data,
            {"content-type": payload.content_type, "upsert": "false"},
        )
        return StoredImage(url=bucket.get_public_url(path), storage_id=path)

    def delete(self, storage_id: str) -> None:
        # Removing a path that no longer exists is not an error in Supabase.
        self.client.storage.from_(self.bucket).remove([storage_id])

    def ping(self) -> None:
        self.client.storage.get_bucket(self.bucket)
