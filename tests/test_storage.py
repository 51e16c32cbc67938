"""Image payload decoding and the Supabase-backed object store."""

import base64
import re
from unittest.mock import MagicMock

import pytest

from catalog.core.errors import ValidationError
from catalog.core.storage import (
    ImagePayload,
    StoredImage,
    SupabaseObjectStore,
    generate_object_path,
)


class TestImagePayload:
    def test_from_data_uri(self):
        raw = b"\x89PNGdata"
        uri = "data:image/png;base64," + base64.b64encode(raw).decode()

        payload = ImagePayload.from_data_uri(uri)

        assert payload.content_type == "image/png"
        assert payload.data == raw
        assert payload.extension == "png"

    @pytest.mark.parametrize(
        "value",
        ["hello", "data:image/png,abc", "data:image/png;base64,@@@"],
    )
    def test_rejects_bad_data_uri(self, value):
        with pytest.raises(ValidationError):
            ImagePayload.from_data_uri(value)

    def test_extension_fallbacks(self):
        assert ImagePayload("image/jpeg", b"x").extension == "jpg"
        assert ImagePayload("image/heic", b"x").extension == "heic"


def test_generate_object_path():
    path = generate_object_path("/myAppUploads/", "webp")

    assert re.fullmatch(r"myAppUploads/\d+-[0-9a-f]{32}\.webp", path)


class TestSupabaseObjectStore:
    @pytest.fixture
    def client(self) -> MagicMock:
        client = MagicMock()
        bucket = client.storage.from_.return_value
        bucket.get_public_url.side_effect = lambda path: f"https://cdn.test/{path}"
        return client

    def test_upload(self, client: MagicMock):
        store = SupabaseObjectStore(lambda: client, "assets")

        stored = store.upload(ImagePayload("image/png", b"abc"), "products")

        assert isinstance(stored, StoredImage)
        assert stored.storage_id.startswith("products/")
        assert stored.url == f"https://cdn.test/{stored.storage_id}"
        client.storage.from_.assert_called_with("assets")
        path, data, options = client.storage.from_.return_value.upload.call_args.args
        assert path == stored.storage_id
        assert data == b"abc"
        assert options["content-type"] == "image/png"

    def test_delete(self, client: MagicMock):
        store = SupabaseObjectStore(lambda: client, "assets")

        store.delete("products/1.png")

        client.storage.from_.return_value.remove.assert_called_once_with(["products/1.png"])

    def test_client_created_lazily(self):
        factory = MagicMock()
        SupabaseObjectStore(factory, "assets")

        factory.assert_not_called()
