"""Unit tests for cache entries."""

import json
import stat
import tempfile
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import pytest

from aspire_cache.caching.entry import CacheEntry, FileKind
from aspire_cache.caching.errors import (
    CacheMiss,
    MarkedError,
    NotCacheable,
    ReadError,
    RemoveError,
)


HOST = "abc.myreadinglists.org"
LIST_URL = f"http://{HOST}/lists/L1.json"


@dataclass
class Location:
    """Minimal cache location for entries."""

    path: Path
    mode: int = 0o750
    tenancy_host: str | None = HOST


@pytest.fixture
def location() -> Generator[Location]:
    """Create a temporary cache location."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Location(Path(tmpdir))


@pytest.fixture
def entry(location: Location) -> CacheEntry:
    """Create a list cache entry."""
    return CacheEntry(LIST_URL, location)


class TestCacheability:
    """Tests for cacheability rules."""

    @pytest.mark.parametrize(
        "url",
        [
            f"http://{HOST}/lists/L1.json",
            f"http://{HOST}/items/I1.json",
            f"http://{HOST}/users/U1/notes/N1.json",
            f"http://{HOST}/config/colours.json",
            f"http://{HOST}/events/E1.json",
        ],
    )
    def test_cacheable(self, location: Location, url: str) -> None:
        """Test tenancy object URLs are cacheable."""
        assert CacheEntry.cacheable(url, location)

    @pytest.mark.parametrize(
        "url",
        [
            None,
            "not a url",
            "http://other.example.com/lists/L1.json",
            f"http://{HOST}/",
            f"http://{HOST}/catalog/C1.json",
            f"http://{HOST}/users/U1.json",
            f"http://{HOST}/config/importance123.json",
        ],
    )
    def test_not_cacheable(self, location: Location, url: str | None) -> None:
        """Test foreign hosts and excluded object types are rejected."""
        with pytest.raises(NotCacheable):
            CacheEntry(url, location)

    def test_host_comparison_ignores_case(self, location: Location) -> None:
        """Test the tenancy host matches case-insensitively."""
        assert CacheEntry.cacheable("http://ABC.MyReadingLists.org/lists/L1.json", location)


class TestPaths:
    """Tests for cache file naming."""

    def test_list_paths(self, entry: CacheEntry, location: Location) -> None:
        """Test a list has a JSON API sibling and a hidden marker."""
        assert entry.file == location.path / "lists" / "L1.json"
        assert entry.json_file == location.path / "lists" / "L1-json.json"
        assert entry.marker_file == location.path / "lists" / ".L1.json"
        assert entry.json_api_url == "lists/L1"
        assert entry.json_api_params == {
            "bookjacket": 1,
            "editions": 1,
            "draft": 1,
            "history": 1,
        }

    def test_child_paths(self, location: Location) -> None:
        """Test child objects are stored below their parent."""
        entry = CacheEntry(f"http://{HOST}/users/U1/notes/N1.json", location)

        assert entry.file == location.path / "users" / "U1" / "notes" / "N1.json"
        assert entry.json_file is None
        assert not entry.has_json_api

    def test_format_is_added(self, location: Location) -> None:
        """Test URLs without a format are stored as .json files."""
        entry = CacheEntry(f"http://{HOST}/modules/M1", location)

        assert entry.file == location.path / "modules" / "M1.json"

    def test_is_list(self, entry: CacheEntry, location: Location) -> None:
        """Test list classification of entries."""
        child = CacheEntry(f"http://{HOST}/lists/L1/items/I1.json", location)

        assert entry.is_list()
        assert not child.is_list()
        assert child.is_list(strict=False)
        assert child.is_child_of(entry)
        assert child.is_child_of(entry, strict=True)
        assert not entry.is_child_of(child, strict=True)

    def test_references_followable(self, entry: CacheEntry, location: Location) -> None:
        """Test events do not have followable references."""
        event = CacheEntry(f"http://{HOST}/events/E1.json", location)

        assert entry.references_followable
        assert not event.references_followable

    def test_equality_by_url(self, entry: CacheEntry, location: Location) -> None:
        """Test entries with the same URL are equal."""
        assert entry == CacheEntry(LIST_URL, location)
        assert len({entry, CacheEntry(LIST_URL, location)}) == 1


class TestMarking:
    """Tests for in-progress markers."""

    def test_mark_unmark_lifecycle(self, entry: CacheEntry) -> None:
        """Test the marker appears on mark and disappears on unmark."""
        assert not entry.is_marked()

        entry.mark()
        assert entry.is_marked()

        entry.unmark()
        assert not entry.is_marked()

    def test_mark_twice_raises(self, entry: CacheEntry) -> None:
        """Test marking an already-marked entry fails."""
        entry.mark()

        with pytest.raises(MarkedError):
            entry.mark()

    def test_force_mark(self, entry: CacheEntry) -> None:
        """Test forcing a mark on a marked entry succeeds."""
        entry.mark()

        entry.mark(force=True)

        assert entry.is_marked()

    def test_unmark_missing_marker(self, entry: CacheEntry) -> None:
        """Test unmarking an unmarked entry is not an error."""
        entry.unmark()

        assert not entry.is_marked()

    def test_scoped_lock_releases(self, entry: CacheEntry) -> None:
        """Test the lock releases the marker when the block exits."""
        with entry.mark() as marked:
            assert marked is entry
            assert entry.is_marked()

        assert not entry.is_marked()

    def test_scoped_lock_releases_on_error(self, entry: CacheEntry) -> None:
        """Test the marker is released when the block raises."""
        with pytest.raises(RuntimeError), entry.mark():
            raise RuntimeError("boom")

        assert not entry.is_marked()

    def test_scoped_lock_keeps_marker_on_error(self, entry: CacheEntry) -> None:
        """Test keep_on_error leaves the marker when the block raises."""
        with pytest.raises(RuntimeError), entry.mark(keep_on_error=True):
            raise RuntimeError("boom")

        assert entry.is_marked()

    def test_release_is_idempotent(self, entry: CacheEntry) -> None:
        """Test releasing twice only unmarks once."""
        lock = entry.mark()
        lock.release()
        entry.mark()

        lock.release()

        assert entry.is_marked()


class TestReadWrite:
    """Tests for reading and writing entry files."""

    def test_write_then_read(self, entry: CacheEntry) -> None:
        """Test written data is read back unchanged."""
        entry.write(b'{"a": 1}')

        assert entry.exists()
        assert entry.read() == b'{"a": 1}'
        assert entry.read_json() == {"a": 1}

    def test_write_replaces_content(self, entry: CacheEntry) -> None:
        """Test a shorter write leaves no trailing data."""
        entry.write('{"long": "xxxxxxxxxxxxxxxx"}')
        entry.write("{}")

        assert entry.read() == b"{}"

    def test_json_api_file(self, entry: CacheEntry) -> None:
        """Test the JSON API representation is stored separately."""
        entry.write(b'{"id": "L1"}', FileKind.JSON_API)

        assert entry.exists(FileKind.JSON_API)
        assert not entry.exists()
        assert json.loads(entry.json_file.read_bytes()) == {"id": "L1"}  # type: ignore[union-attr]

    def test_write_creates_directories_with_mode(
        self, entry: CacheEntry, location: Location
    ) -> None:
        """Test parent directories get the cache mode."""
        entry.write(b"{}")

        assert stat.S_IMODE((location.path / "lists").stat().st_mode) == 0o750

    def test_read_missing_is_cache_miss(self, entry: CacheEntry) -> None:
        """Test reading an uncached entry is a cache miss."""
        with pytest.raises(CacheMiss):
            entry.read()

    def test_read_missing_json_api_representation(self, location: Location) -> None:
        """Test objects without a JSON API representation miss."""
        module = CacheEntry(f"http://{HOST}/modules/M1", location)

        with pytest.raises(CacheMiss):
            module.read(FileKind.JSON_API)
        assert not module.exists(FileKind.JSON_API)

    def test_read_invalid_json(self, entry: CacheEntry) -> None:
        """Test unparseable content is a read error."""
        entry.write(b"not json")

        with pytest.raises(ReadError):
            entry.read_json()


class TestDelete:
    """Tests for deleting entries."""

    def test_delete_marked_without_force_raises(self, entry: CacheEntry) -> None:
        """Test in-progress entries are not silently deleted."""
        entry.write(b"{}")
        entry.mark()

        with pytest.raises(MarkedError):
            entry.delete()

        assert entry.exists()

    def test_forced_delete_removes_everything(
        self, entry: CacheEntry, location: Location
    ) -> None:
        """Test a forced delete removes all files and empty parents."""
        entry.write(b"{}")
        entry.write(b"{}", FileKind.JSON_API)
        entry.mark()

        entry.delete(force=True)

        assert not entry.file.exists()
        assert not entry.json_file.exists()  # type: ignore[union-attr]
        assert not entry.marker_file.exists()
        assert not (location.path / "lists").exists()
        assert location.path.is_dir()

    def test_delete_with_children(self, entry: CacheEntry, location: Location) -> None:
        """Test children of the object are removed on request."""
        child = CacheEntry(f"http://{HOST}/lists/L1/items/I1.json", location)
        entry.write(b"{}")
        child.write(b"{}")

        entry.delete(with_children=True)

        assert not child.file.exists()
        assert not (location.path / "lists").exists()

    def test_delete_keeps_children_by_default(
        self, entry: CacheEntry, location: Location
    ) -> None:
        """Test children survive a plain delete."""
        child = CacheEntry(f"http://{HOST}/lists/L1/items/I1.json", location)
        entry.write(b"{}")
        child.write(b"{}")

        entry.delete()

        assert not entry.file.exists()
        assert child.file.exists()

    def test_failed_delete_releases_marker(self, entry: CacheEntry) -> None:
        """Test the marker taken for a delete is removed when the delete fails."""
        # A non-empty directory in place of the file cannot be unlinked
        entry.file.mkdir(parents=True)
        (entry.file / "stray").write_text("")

        with pytest.raises(RemoveError):
            entry.delete()

        assert not entry.is_marked()
        assert entry.file.is_dir()
