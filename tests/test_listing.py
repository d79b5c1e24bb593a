"""Tests for the displayed directory listing."""
from unittest.mock import AsyncMock

import pytest

from conftest import make_task
from driveup.errors import APIError
from driveup.listing import DirectoryListing, ListingRefresher, file_kind


SERVER_LISTING = {
    "name": "Photos",
    "directories": [{"id": "d1", "name": "2024"}],
    "files": [{"id": "f1", "name": "beach.jpg", "size": 2048}],
    "path": [{"id": "root", "name": "My Drive"}, {"id": "p1", "name": "Photos"}],
}


@pytest.mark.parametrize(
    "filename, kind",
    [
        ("report.PDF", "pdf"),
        ("photo.jpeg", "image"),
        ("clip.mov", "video"),
        ("backup.tar.gz", "archive"),
        ("main.py", "code"),
        ("notes.txt", "alt"),
        ("Makefile", "alt"),
    ],
)
def test_file_kind(filename, kind):
    assert file_kind(filename) == kind


class TestDirectoryListing:
    def test_placeholders_go_on_top_in_selection_order(self):
        listing = DirectoryListing()
        listing.replace(SERVER_LISTING, at_root=False)
        a, b = make_task("a.txt"), make_task("b.txt")

        listing.insert_placeholders([a, b])

        assert [f.name for f in listing.files] == ["a.txt", "b.txt", "beach.jpg"]
        assert [f.id for f in listing.placeholders] == [a.id, b.id]
        assert listing.files[0].size == a.size

    def test_mark_uploading(self):
        listing = DirectoryListing()
        a = make_task("a.txt")
        listing.insert_placeholders([a])
        listing.mark_uploading(a.id)
        assert listing.files[0].is_uploading is True

    def test_remove_placeholder(self):
        listing = DirectoryListing()
        listing.replace(SERVER_LISTING, at_root=False)
        a = make_task("a.txt")
        listing.insert_placeholders([a])

        assert listing.remove_placeholder(a.id) is True
        assert listing.remove_placeholder(a.id) is False
        assert listing.remove_placeholder("f1") is False
        assert [f.name for f in listing.files] == ["beach.jpg"]

    def test_replace_drops_placeholders(self):
        listing = DirectoryListing()
        listing.insert_placeholders([make_task("a.txt")])

        listing.replace(SERVER_LISTING, at_root=False)

        assert listing.placeholders == []
        assert listing.name == "Photos"
        assert listing.directories[0].name == "2024"
        assert listing.files[0].size == 2048
        assert listing.files[0].kind == "image"
        assert listing.path[-1]["name"] == "Photos"

    def test_root_is_my_drive(self):
        listing = DirectoryListing()
        listing.replace(SERVER_LISTING, at_root=True)
        assert listing.name == "My Drive"

    def test_empty(self):
        listing = DirectoryListing()
        assert listing.is_empty
        listing.replace({"directories": [], "files": []}, at_root=True)
        assert listing.is_empty


class TestListingRefresher:
    @pytest.mark.asyncio
    async def test_refresh_replaces_listing(self):
        client = AsyncMock()
        client.get_directory.return_value = SERVER_LISTING
        listing = DirectoryListing(error_message="old error")

        await ListingRefresher(client, listing, directory_id="p1").refresh()

        assert listing.error_message is None
        assert listing.name == "Photos"

    @pytest.mark.asyncio
    async def test_refresh_error_propagates_and_keeps_listing(self):
        client = AsyncMock()
        client.get_directory.side_effect = APIError("Directory not found", 404)
        listing = DirectoryListing()
        listing.replace(SERVER_LISTING, at_root=False)

        with pytest.raises(APIError):
            await ListingRefresher(client, listing, directory_id="p1").refresh()

        assert listing.files[0].name == "beach.jpg"
