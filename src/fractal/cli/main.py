"""``fractal`` command line: build, publish, serve and render."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..builder import FractalBuilder
from ..bundler import EsbuildBundler
from ..config_loader import load_config
from ..detector import FractalDetector, get_strategy
from ..exceptions import ConfigLoadError
from ..publisher import Publisher
from ..registry.compiler import get_compiler
from ..registry.server import create_app
from ..registry.store import RegistryStore
from ..runtime import Fractal, RuntimeLoader, render_to_string
from ..schemas import BuildOptions, FractalConfig
from ..transformer import FractalTransformer
from ..utils.logging_utils import configure_logging
from .exceptions import CliError, CommandError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fractal", description="Build, publish and serve fractal components.")
    parser.add_argument("-c", "--config", help="Path to fractal.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Build every fractal under a directory")
    build.add_argument("-i", "--input", help="Directory to search (default: working directory)")
    build.add_argument("-o", "--output", help="Output directory (default: ./dist/fractals)")
    build.add_argument("-w", "--watch", action="store_true", help="Rebuild on change")
    build.add_argument("--registry", help="Upload built fractals to this registry URL")
    build.add_argument("--jobs", type=int, help="Parallel builds")

    publish = sub.add_parser("publish", help="Upload a build output directory to a registry")
    publish.add_argument("-o", "--output", help="Build output directory (default: ./dist/fractals)")
    publish.add_argument("--registry", help="Registry URL")

    serve = sub.add_parser("serve", help="Run the registry server")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="Port")
    serve.add_argument("--storage", help="Storage directory")

    render = sub.add_parser("render", help="Load a published fractal and print its HTML")
    render.add_argument("fractal_id", help="Fractal id")
    render.add_argument("--registry", help="Registry URL")
    render.add_argument("--props", help="Component props as a JSON object")
    return parser


def make_builder(config: FractalConfig) -> FractalBuilder:
    settings = config.build
    detector = FractalDetector(
        strategy=get_strategy(settings.detection),
        extensions=settings.extensions,
        skip_dirs=settings.skip_dirs,
    )
    return FractalBuilder(
        detector=detector,
        transformer=FractalTransformer(runtime_module=settings.runtime_module),
        bundler=EsbuildBundler(config.esbuild_path),
    )


def cmd_build(args: argparse.Namespace, config: FractalConfig) -> int:
    settings = config.build
    input_dir = args.input or settings.input
    options = BuildOptions(
        output=Path(args.output or settings.output),
        input=Path(input_dir) if input_dir else None,
        watch=args.watch,
        jobs=args.jobs or settings.jobs,
        externals=tuple(settings.externals),
        runtime_module=settings.runtime_module,
    )
    builder = make_builder(config)

    if options.watch:
        stop = threading.Event()
        try:
            builder.watch(options, stop_event=stop, interval=settings.watch_interval)
        except KeyboardInterrupt:
            stop.set()
        return 0

    report = builder.build(options)
    for failure in report.failures:
        print(f"  x {failure.file_path} [{failure.stage.value}]: {failure.message}", file=sys.stderr)

    registry = args.registry
    if registry and report.results:
        logger.info("Uploading fractals to registry at %s", registry)
        publish_report = Publisher(registry).publish_results(report.results)
        if not publish_report.ok:
            raise CommandError(
                f"{len(publish_report.failures)} upload(s) failed", command_name="build"
            )
    if not report.ok:
        raise CommandError(f"{report.failed} fractal(s) failed to build", command_name="build")
    return 0


def cmd_publish(args: argparse.Namespace, config: FractalConfig) -> int:
    registry = args.registry or config.registry.url
    if not registry:
        raise CommandError("No registry URL (use --registry or FRACTAL_REGISTRY_URL)", command_name="publish")
    output = Path(args.output or config.build.output)
    if not output.is_dir():
        raise CommandError(f"Output directory not found: {output}", command_name="publish")
    report = Publisher(registry).publish_output_dir(output)
    print(f"Published {len(report.published)}, failed {len(report.failures)}")
    if not report.ok:
        raise CommandError(f"{len(report.failures)} upload(s) failed", command_name="publish")
    return 0


def cmd_serve(args: argparse.Namespace, config: FractalConfig) -> int:
    registry = config.registry
    store = RegistryStore(
        args.storage or registry.storage_dir,
        compiler=get_compiler(registry.compiler, config.esbuild_path),
    )
    app = create_app(store, config)
    host = args.host or registry.host
    port = args.port or registry.port
    logger.info("Registry: http://%s:%s", host, port)
    app.run(host=host, port=port, debug=False)
    return 0


async def render_fractal(
    fractal_id: str,
    config: FractalConfig,
    registry: Optional[str] = None,
    props: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Server-render a fractal; None when it cannot be loaded."""
    async with RuntimeLoader.from_config(config) as loader:
        view = Fractal(fractal_id, props=props, registry=registry, loader=loader)
        if await view.wait() is None:
            return None
        return render_to_string(view.render())


def cmd_render(args: argparse.Namespace, config: FractalConfig) -> int:
    try:
        props = json.loads(args.props) if args.props else {}
    except json.JSONDecodeError as e:
        raise CommandError(f"Invalid --props: {e}", command_name="render", arguments=args.props)
    if not isinstance(props, dict):
        raise CommandError("--props must be a JSON object", command_name="render", arguments=args.props)
    html = asyncio.run(render_fractal(args.fractal_id, config, args.registry, props))
    if html is None:
        raise CommandError(f"Fractal not available: {args.fractal_id}", command_name="render")
    print(html)
    return 0


COMMANDS = {
    "build": cmd_build,
    "publish": cmd_publish,
    "serve": cmd_serve,
    "render": cmd_render,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=Path(args.log_file) if args.log_file else None,
    )
    try:
        config = load_config(args.config)
        return COMMANDS[args.command](args, config)
    except ConfigLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except CliError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
