"""Tests for owning-package lookup and artifact identities."""

import json
import tempfile
from pathlib import Path

import pytest

from fractal.package_resolver import PackageResolver, generate_fractal_name
from fractal.schemas import PackageInfo


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write_descriptor(directory: Path, **fields) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(fields))
    return path


class TestPackageResolver:
    """Tests for nearest-descriptor resolution."""

    def test_finds_nearest_descriptor(self, temp_dir):
        """Test the closest valid package.json wins."""
        write_descriptor(temp_dir, name="root-app", version="0.0.1")
        inner = write_descriptor(temp_dir / "packages" / "ui", name="@acme/ui", version="2.1.0")
        source = temp_dir / "packages" / "ui" / "src" / "Button.tsx"
        source.parent.mkdir(parents=True)
        source.write_text("")

        info = PackageResolver().find_closest_package(source)

        assert info.name == "@acme/ui"
        assert info.version == "2.1.0"
        assert info.descriptor_path == inner.resolve()
        assert info.root == inner.resolve().parent

    def test_skips_descriptor_without_version(self, temp_dir):
        """Test a descriptor missing name or version is passed over."""
        write_descriptor(temp_dir, name="outer", version="1.0.0")
        write_descriptor(temp_dir / "inner", name="inner")

        info = PackageResolver().find_closest_package(temp_dir / "inner" / "A.tsx")

        assert info.name == "outer"

    def test_skips_malformed_descriptor(self, temp_dir):
        """Test unparsable descriptors are ignored."""
        write_descriptor(temp_dir, name="outer", version="1.0.0")
        (temp_dir / "inner").mkdir()
        (temp_dir / "inner" / "package.json").write_text("{ nope")

        info = PackageResolver().find_closest_package(temp_dir / "inner" / "A.tsx")

        assert info.name == "outer"

    def test_no_descriptor(self, temp_dir):
        """Test None when no ancestor has a valid descriptor."""
        resolver = PackageResolver(descriptor_name="fractal-test-descriptor.json")
        assert resolver.find_closest_package(temp_dir / "A.tsx") is None

    def test_results_are_cached_per_directory(self, temp_dir):
        """Test the cache serves later lookups until cleared."""
        descriptor = write_descriptor(temp_dir, name="app", version="1.0.0")
        resolver = PackageResolver()
        first = resolver.find_closest_package(temp_dir / "A.tsx")

        descriptor.write_text(json.dumps({"name": "app", "version": "9.9.9"}))
        assert resolver.find_closest_package(temp_dir / "B.tsx") is first

        resolver.clear_cache()
        assert resolver.find_closest_package(temp_dir / "B.tsx").version == "9.9.9"


class TestArtifactIdentity:
    """Tests for identity construction and parsing."""

    def test_generate_fractal_name(self, temp_dir):
        """Test the package::kebab-name::version shape."""
        info = PackageInfo(name="@acme/ui", version="1.2.3", descriptor_path=temp_dir / "package.json")
        assert generate_fractal_name(info, "StatsCard.tsx") == "acme-ui::stats-card::1.2.3"

    def test_identity_is_deterministic(self, temp_dir):
        """Test identical inputs give identical identities."""
        info = PackageInfo(name="app", version="0.1.0", descriptor_path=temp_dir / "package.json")
        assert generate_fractal_name(info, "Button.jsx") == generate_fractal_name(info, "Button.jsx")
        assert generate_fractal_name(info, "Button.jsx") == "app::button::0.1.0"
