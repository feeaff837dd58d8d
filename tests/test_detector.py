"""
Tests for fractal detection.

Covers directive placement, the comment strategy, extension filtering and
the directories every walk skips.
"""

import tempfile
from pathlib import Path

import pytest

from fractal.detector import (
    CommentDirectiveStrategy,
    DirectiveStrategy,
    FractalDetector,
    get_strategy,
)
from fractal.schemas import FileKind


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


# ============================================================================
# STRATEGY TESTS
# ============================================================================


class TestDirectiveStrategy:
    """Tests for the directive check."""

    @pytest.mark.parametrize(
        "content",
        [
            '"use fractal";\nexport default function A() {}',
            "'use fractal'\nexport default 1",
            '\n\n   \t"use fractal";',
        ],
    )
    def test_leading_directive_matches(self, content):
        """Test directive in either quote style after optional whitespace."""
        assert DirectiveStrategy().matches(content) is True

    @pytest.mark.parametrize(
        "content",
        [
            'import React from "react";\n"use fractal";',
            '// header\n"use fractal";',
            '"use client";\n"use fractal";',
            "",
        ],
    )
    def test_directive_must_come_first(self, content):
        """Test directive anywhere but first is ignored."""
        assert DirectiveStrategy().matches(content) is False

    def test_comment_strategy_accepts_comment(self):
        """Test comment strategy accepts both comment forms and the directive."""
        strategy = CommentDirectiveStrategy()
        assert strategy.matches("// use fractal\nexport default 1")
        assert strategy.matches("/* use fractal */\nexport default 1")
        assert strategy.matches('"use fractal";')
        assert not strategy.matches("// use fractals\n")

    def test_get_strategy(self):
        """Test strategies are looked up by name."""
        assert isinstance(get_strategy("directive"), DirectiveStrategy)
        assert isinstance(get_strategy("comment"), CommentDirectiveStrategy)
        with pytest.raises(ValueError, match="Unknown detection strategy"):
            get_strategy("magic")


# ============================================================================
# DETECTOR TESTS
# ============================================================================


class TestFractalDetector:
    """Tests for file classification and tree walks."""

    def test_classify(self, temp_dir):
        """Test classification of fractal and ordinary files."""
        fractal = write(temp_dir / "Button.tsx", '"use fractal";\nexport default function Button() {}')
        ordinary = write(temp_dir / "Util.tsx", "export const x = 1;")
        detector = FractalDetector()

        assert detector.classify(fractal) is FileKind.FRACTAL
        assert detector.classify(ordinary) is FileKind.ORDINARY
        assert detector.is_fractal(fractal)

    def test_unreadable_file_is_ordinary(self, temp_dir):
        """Test missing files classify as ordinary instead of raising."""
        assert FractalDetector().classify(temp_dir / "missing.tsx") is FileKind.ORDINARY

    def test_find_fractals(self, temp_dir):
        """Test only directive-bearing sources with component extensions are found."""
        write(temp_dir / "src" / "Button.tsx", '"use fractal";\nexport default () => null;')
        write(temp_dir / "src" / "Card.jsx", "'use fractal'\nexport default () => null;")
        write(temp_dir / "src" / "Plain.tsx", "export default () => null;")
        write(temp_dir / "src" / "notes.ts", '"use fractal";')

        found = FractalDetector().find_fractals(temp_dir)

        assert sorted(a.file_name for a in found) == ["Button.tsx", "Card.jsx"]
        assert all(a.file_path.is_absolute() for a in found)

    def test_find_fractals_skips_build_and_vendor_dirs(self, temp_dir):
        """Test node_modules, dist and friends are never searched."""
        source = '"use fractal";\nexport default () => null;'
        for skipped in ("node_modules", "dist", "build", ".next", "coverage", ".git"):
            write(temp_dir / skipped / "pkg" / "Hidden.tsx", source)
        write(temp_dir / "components" / "Visible.tsx", source)

        found = FractalDetector().find_fractals(temp_dir)

        assert [a.file_name for a in found] == ["Visible.tsx"]

    def test_custom_extensions(self, temp_dir):
        """Test the extension list is configurable."""
        write(temp_dir / "Widget.vue", '"use fractal";')
        detector = FractalDetector(extensions=[".vue"])

        assert [a.file_name for a in detector.find_fractals(temp_dir)] == ["Widget.vue"]

    def test_find_fractals_defaults_to_cwd(self, temp_dir, monkeypatch):
        """Test the working directory is searched when no root is given."""
        write(temp_dir / "Here.tsx", '"use fractal";')
        monkeypatch.chdir(temp_dir)

        assert [a.file_name for a in FractalDetector().find_fractals()] == ["Here.tsx"]
