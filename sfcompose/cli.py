"""CLI entrypoints for sfcompose commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

import yaml
from jinja2 import TemplateError

from .config import ConfigError
from .errors import CompileError
from .logging import configure_logging
from .pipeline import compile_directory
from .registry import Registry


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


def _add_path_argument(parser: argparse.ArgumentParser, *, optional: bool = True) -> None:
    if optional:
        parser.add_argument(
            "path",
            nargs="?",
            default=".",
            help="Path to the component directory (defaults to current directory).",
        )
    else:
        parser.add_argument("path", help="Path to the component directory.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sfcompose",
        description="Compile single-file component templates and render pages.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser(
        "list",
        help="List the page names of every component.",
    )
    _add_verbose_option(list_parser, suppress_default=True)
    _add_path_argument(list_parser)

    deps_parser = subparsers.add_parser(
        "deps",
        help="Show the ordered dependency closure of components.",
    )
    _add_verbose_option(deps_parser, suppress_default=True)
    _add_path_argument(deps_parser)
    deps_parser.add_argument(
        "name",
        nargs="?",
        help="Canonical component name such as ./pages/home (defaults to all).",
    )

    render_parser = subparsers.add_parser(
        "render",
        help="Render one page to stdout or a file.",
    )
    _add_verbose_option(render_parser, suppress_default=True)
    _add_path_argument(render_parser, optional=False)
    render_parser.add_argument("name", help="Canonical page name such as ./pages/home.")
    render_parser.add_argument(
        "--data",
        type=Path,
        help="YAML or JSON file providing the render context.",
    )
    render_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write the rendered page to this file instead of stdout.",
    )

    return parser


def _load_data(path: Path | None) -> Dict[str, Any]:
    if path is None:
        return {}
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path} must contain a mapping at the root")
    return loaded


def _print_deps(registry: Registry, name: str | None) -> None:
    names = [name] if name else list(registry.documents)
    for document in names:
        order = registry.dependency_order(document)
        print(f"{document}: {' '.join(order)}")


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for sfcompose commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        registry = compile_directory(args.path)
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")
    except (CompileError, ConfigError) as exc:
        parser.exit(1, f"sfcompose {args.command} failed: {exc}\n")

    if args.command == "list":
        for name in registry.documents:
            print(name)
    elif args.command == "deps":
        try:
            _print_deps(registry, args.name)
        except KeyError as exc:
            parser.exit(1, f"{exc.args[0]}\n")
    elif args.command == "render":
        if args.name not in registry:
            parser.exit(1, f"Unknown template: {args.name}\n")
        try:
            data = _load_data(args.data)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            parser.exit(1, f"Unable to load render data: {exc}\n")
        try:
            output = registry.render(args.name, data)
        except TemplateError as exc:
            parser.exit(1, f"sfcompose render failed: {exc}\n")
        if args.output is not None:
            args.output.write_text(output, encoding="utf-8")
            print(f"Rendered {args.name} to {args.output}")
        else:
            sys.stdout.write(output)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


if __name__ == "__main__":
    main(sys.argv[1:])
