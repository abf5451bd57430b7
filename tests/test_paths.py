"""Tests for storage key helpers and unique key resolution."""

import asyncio

import pytest

from asset_store.storage import ResolutionError, derive_asset_host, join_key, strip_leading_slash
from asset_store.storage.paths import KeyResolver, dated_target_dir, sanitize_file_name
from tests.conftest import client_error


def make_exists(taken: set[str]):
    async def exists(key: str) -> bool:
        return key in taken

    return exists


class TestKeyHelpers:
    """Tests for path normalization helpers."""

    def test_strip_leading_slash(self) -> None:
        """Test a single leading slash is removed."""
        assert strip_leading_slash("/images") == "images"
        assert strip_leading_slash("images") == "images"
        assert strip_leading_slash("") == ""

    def test_strip_only_one_slash(self) -> None:
        """Test only the first slash is stripped."""
        assert strip_leading_slash("//images") == "/images"

    def test_join_key_drops_separators(self) -> None:
        """Test joined keys never start with or double a separator."""
        assert join_key("/images/", "/2024/01/", "cat.jpg") == "images/2024/01/cat.jpg"
        assert join_key("", "2024//01", "cat.jpg") == "2024/01/cat.jpg"
        assert join_key("", "") == ""

    def test_sanitize_file_name(self) -> None:
        """Test unsafe characters are replaced with dashes."""
        assert sanitize_file_name("my cat (1).jpg") == "my-cat--1-.jpg"
        assert sanitize_file_name("me@home.png") == "me@home.png"

    def test_dated_target_dir(self) -> None:
        """Test default directory has year and month under the base."""
        parts = dated_target_dir("/images").split("/")

        assert parts[0] == "images"
        assert len(parts[1]) == 4 and parts[1].isdigit()
        assert len(parts[2]) == 2 and 1 <= int(parts[2]) <= 12


class TestAssetHost:
    """Tests for region-derived public hosts."""

    def test_us_east_1(self) -> None:
        """Test us-east-1 uses the global endpoint."""
        assert derive_asset_host("my-bucket", "us-east-1") == "https://s3.amazonaws.com/my-bucket"

    def test_other_region(self) -> None:
        """Test other regions use the dashed regional endpoint."""
        assert (
            derive_asset_host("my-bucket", "eu-west-1")
            == "https://s3-eu-west-1.amazonaws.com/my-bucket"
        )


class TestKeyResolver:
    """Tests for collision-free key resolution."""

    @pytest.mark.asyncio
    async def test_free_key_returned_as_is(self) -> None:
        """Test an unused key is returned unchanged."""
        resolver = KeyResolver(make_exists(set()))

        key = await resolver.resolve_unique_key("cat.jpg", "images/2024/01")

        assert key == "images/2024/01/cat.jpg"

    @pytest.mark.asyncio
    async def test_collision_appends_counter(self) -> None:
        """Test taken keys get an incrementing suffix before the extension."""
        taken = {"images/2024/01/cat.jpg", "images/2024/01/cat-1.jpg"}
        resolver = KeyResolver(make_exists(taken))

        key = await resolver.resolve_unique_key("cat.jpg", "images/2024/01")

        assert key == "images/2024/01/cat-2.jpg"
        assert key not in taken

    @pytest.mark.asyncio
    async def test_never_returns_seeded_key(self) -> None:
        """Test no returned key was pre-seeded as existing."""
        taken = {f"dir/photo-{i}.png" for i in range(1, 6)} | {"dir/photo.png"}
        resolver = KeyResolver(make_exists(taken))

        for _ in range(3):
            key = await resolver.resolve_unique_key("photo.png", "dir")
            assert key not in taken
            taken.add(key)
            resolver.release(key)

    @pytest.mark.asyncio
    async def test_name_sanitized_and_leading_slash_stripped(self) -> None:
        """Test resolved keys are sanitized relative paths."""
        resolver = KeyResolver(make_exists(set()))

        key = await resolver.resolve_unique_key("my cat.jpg", "/2024/01")

        assert key == "2024/01/my-cat.jpg"

    @pytest.mark.asyncio
    async def test_exhausted(self) -> None:
        """Test resolution fails once the attempt budget is used up."""
        calls: list[str] = []

        async def always_taken(key: str) -> bool:
            calls.append(key)
            return True

        resolver = KeyResolver(always_taken, max_attempts=3)

        with pytest.raises(ResolutionError, match="exhausted"):
            await resolver.resolve_unique_key("cat.jpg", "dir")
        assert calls == ["dir/cat.jpg", "dir/cat-1.jpg", "dir/cat-2.jpg"]

    @pytest.mark.asyncio
    async def test_check_failure_raises_resolution_error(self) -> None:
        """Test transport failures surface as ResolutionError with the cause."""
        error = client_error("AccessDenied", "Access Denied", "HeadObject")

        async def failing(key: str) -> bool:
            raise error

        resolver = KeyResolver(failing)

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve_unique_key("cat.jpg", "dir")
        assert exc_info.value.cause is error
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_concurrent_resolution_yields_distinct_keys(self) -> None:
        """Test pending reservations keep concurrent callers apart."""

        async def slow_exists(key: str) -> bool:
            await asyncio.sleep(0)
            return False

        resolver = KeyResolver(slow_exists)

        first, second = await asyncio.gather(
            resolver.resolve_unique_key("cat.jpg", "dir"),
            resolver.resolve_unique_key("cat.jpg", "dir"),
        )

        assert {first, second} == {"dir/cat.jpg", "dir/cat-1.jpg"}
        assert await resolver.resolve_unique_key("cat.jpg", "dir") == "dir/cat-2.jpg"

    @pytest.mark.asyncio
    async def test_release_frees_key(self) -> None:
        """Test released keys can be handed out again."""
        resolver = KeyResolver(make_exists(set()))

        key = await resolver.resolve_unique_key("cat.jpg", "dir")
        resolver.release(key)

        assert await resolver.resolve_unique_key("cat.jpg", "dir") == key

    def test_invalid_max_attempts(self) -> None:
        """Test the attempt budget must be positive."""
        with pytest.raises(ValueError, match="at least 1"):
            KeyResolver(make_exists(set()), max_attempts=0)
