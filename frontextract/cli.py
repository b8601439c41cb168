"""CLI entrypoints for frontextract commands."""

from __future__ import annotations

import argparse
import sys
import zipfile
from pathlib import Path

from .config import load_config
from .errors import FrontExtractError
from .formats import detect_container, supported_extensions
from .logging import configure_logging
from .models import ContainerHandle, FormatFamily, PackageKind, format_size
from .pipeline import Pipeline
from .progress import LoggingObserver
from .unpack import list_entries


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frontextract",
        description="Extract front-end web assets from application packages and installers.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract the web assets of a container into a directory or zip archive.",
    )
    _add_verbose_option(extract_parser, suppress_default=True)
    extract_parser.add_argument("input", help="Path to the container (.zip, .asar, .exe, .dmg, .deb, .rpm).")
    extract_parser.add_argument(
        "-o",
        "--output",
        required=True,
        help="Destination directory, or archive path when --archive is given.",
    )
    extract_parser.add_argument(
        "--archive",
        action="store_true",
        help="Emit a zip archive instead of a directory.",
    )
    extract_parser.add_argument(
        "--config",
        default=None,
        help="Path to frontextract.yml or the directory holding it (default: current directory).",
    )
    extract_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before extracting.",
    )

    formats_parser = subparsers.add_parser(
        "formats",
        help="List supported container extensions.",
    )
    _add_verbose_option(formats_parser, suppress_default=True)

    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Show the detected format of a container without extracting it.",
    )
    _add_verbose_option(inspect_parser, suppress_default=True)
    inspect_parser.add_argument("path", help="Path to the container.")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service (requires the service extra).",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def _prompt_confirmation(container: ContainerHandle) -> bool:
    print(
        f"About to extract {container.path.name} ({container.format.value}, "
        f"{format_size(container.size)}). Back up anything you need first."
    )
    try:
        answer = input("Continue? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _run_extract(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    try:
        config = load_config(Path(args.config) if args.config else Path.cwd())
    except FrontExtractError as exc:
        parser.exit(1, f"frontextract extract failed ({exc.category}): {exc}\n")

    pipeline = Pipeline(config)
    kind = PackageKind.ARCHIVE if args.archive else PackageKind.DIRECTORY
    confirm = None if args.yes else _prompt_confirmation
    try:
        result = pipeline.run(
            args.input,
            args.output,
            kind,
            observer=LoggingObserver(),
            confirm=confirm,
        )
    except FrontExtractError as exc:
        parser.exit(
            1,
            f"frontextract extract failed ({exc.category}): {exc}\n"
            "Run with --verbose for more details.\n",
        )
    except FileNotFoundError as exc:
        parser.exit(1, f"{exc}\n")
    finally:
        pipeline.shutdown()

    artifact = result.artifact
    print(
        f"Extracted {result.file_count} file(s) ({result.framework}) "
        f"to {_relativize(artifact.path)} [{artifact.size_label}]"
    )
    for warning in result.warnings:
        print(f"warning: {warning}")


def _run_formats() -> None:
    for family, extensions in supported_extensions().items():
        print(f"{family}: {' '.join(extensions)}")


def _run_inspect(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    try:
        container = detect_container(args.path)
    except FrontExtractError as exc:
        parser.exit(1, f"frontextract inspect failed ({exc.category}): {exc}\n")
    except FileNotFoundError as exc:
        parser.exit(1, f"{exc}\n")

    print(f"path: {container.path}")
    print(f"format: {container.format.value}")
    print(f"family: {container.family.value}")
    print(f"size: {format_size(container.size)}")
    if container.family is FormatFamily.ZIP:
        try:
            entries = list_entries(container.path)
        except (zipfile.BadZipFile, OSError) as exc:
            parser.exit(1, f"Cannot read {container.path.name}: {exc}\n")
        print(f"entries: {len(entries)}")


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for frontextract commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "extract":
        _run_extract(parser, args)
    elif args.command == "formats":
        _run_formats()
    elif args.command == "inspect":
        _run_inspect(parser, args)
    elif args.command == "serve":
        from .service import run_service

        try:
            run_service(host=args.host, port=args.port)
        except RuntimeError as exc:
            parser.exit(1, f"{exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
