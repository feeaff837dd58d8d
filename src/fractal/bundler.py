"""Bundler seam (esbuild by default)."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from .exceptions import BundleError

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class BundleResult:
    output_path: Path
    map_path: Optional[Path]
    output_size: int


class Bundler(Protocol):
    """Bundles one entry file into a single browser ES module."""

    def bundle(
        self,
        entry: Path,
        outfile: Path,
        externals: Sequence[str],
        target: str = "es2020",
    ) -> BundleResult:
        ...


class EsbuildBundler:
    """Runs the ``esbuild`` binary for each entry.

    Args:
        executable: esbuild binary name or path.
        runner: subprocess runner, replaceable in tests.
        timeout: Seconds to wait for one bundle.
    """

    def __init__(
        self,
        executable: str = "esbuild",
        runner: Optional[Runner] = None,
        timeout: int = 120,
    ) -> None:
        self.executable = executable
        self.runner = runner or subprocess.run
        self.timeout = timeout

    def command(self, entry: Path, outfile: Path, externals: Sequence[str], target: str) -> List[str]:
        cmd = [
            self.executable,
            str(entry),
            "--bundle",
            "--format=esm",
            "--platform=browser",
            f"--target={target}",
            "--minify",
            "--sourcemap",
            "--loader:.js=jsx",
            f"--outfile={outfile}",
        ]
        cmd.extend(f"--external:{name}" for name in externals)
        return cmd

    def bundle(
        self,
        entry: Path,
        outfile: Path,
        externals: Sequence[str],
        target: str = "es2020",
    ) -> BundleResult:
        cmd = self.command(entry, outfile, externals, target)
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = self.runner(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            raise BundleError(f"esbuild executable not found: {self.executable}")
        except subprocess.TimeoutExpired:
            raise BundleError(f"esbuild timed out after {self.timeout}s for {entry}")

        if proc.returncode != 0:
            raise BundleError(f"esbuild failed for {entry.name}", stderr=proc.stderr or "")
        if not outfile.exists():
            raise BundleError(f"esbuild produced no output for {entry.name}")

        map_path = outfile.with_name(outfile.name + ".map")
        return BundleResult(
            output_path=outfile,
            map_path=map_path if map_path.exists() else None,
            output_size=outfile.stat().st_size,
        )

    def available(self) -> bool:
        return shutil.which(self.executable) is not None
