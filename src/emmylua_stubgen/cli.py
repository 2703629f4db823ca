"""
CLI application for generating EmmyLua stubs.
Renders VU-Docs YAML records or user Lua sources into annotated ``---@meta`` files.
"""

import argparse
import logging
import sys
from pathlib import Path

from lark import logger as lark_logger

from emmylua_stubgen.codegen import renderer_for, write_code
from emmylua_stubgen.config import GenerationConfig, StubConfig
from emmylua_stubgen.errors import GeneratorError, StubGenError
from emmylua_stubgen.generator import generate_stubs
from emmylua_stubgen.lua_parser import default_parser


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="emmylua-stubgen",
        description="Generate EmmyLua stubs from documentation records or Lua sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s stubs VU-Docs/types .vu/stubs
  %(prog)s code .vu/intermediate ext/Client/__init__.lua --root ext
  %(prog)s code .vu/intermediate ext/Shared/Util.lua --force-global
        """,
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output for debugging",
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")

    sub = parser.add_subparsers(dest="command", required=True)

    stubs = sub.add_parser("stubs", help="Generate stubs from a documentation tree")
    stubs.add_argument(
        "docs", type=Path, help="Root of the documentation tree (contains fb, shared, ...)"
    )
    stubs.add_argument("out", type=Path, help="Directory to write the stubs to")
    stubs.add_argument(
        "--title", type=str, default=None, help="Title written into the file headers"
    )
    stubs.add_argument(
        "--website", type=str, default=None, help="Website written into the file headers"
    )
    stubs.add_argument(
        "--docs-url",
        type=str,
        default=None,
        help="Documentation URL written into the file headers",
    )

    code = sub.add_parser(
        "code", help="Generate intermediate stubs for classes declared in Lua files"
    )
    code.add_argument("out", type=Path, help="Directory to write the stubs to")
    code.add_argument("files", type=Path, nargs="+", help="Lua source files")
    code.add_argument(
        "-r",
        "--root",
        type=Path,
        default=None,
        help="Output paths are relative to this directory (defaults to <cwd>)",
    )
    code.add_argument(
        "--force-global",
        action="store_true",
        help="Also generate stubs for classes that are not assigned to a global variable",
    )
    code.add_argument(
        "--disable",
        action="store_true",
        help="Do not generate anything (useful to toggle generation from config files)",
    )

    return parser


def validate_args(args: argparse.Namespace) -> tuple[bool, str]:
    """
    Validate parsed arguments and set defaults.

    Args:
        args: Parsed command line arguments

    Returns:
        Boolean indicating whether arguments are valid
        String error message, if invalid
    """
    if args.out.exists() and not args.out.is_dir():
        return False, f"Output path exists, but is not a directory: {args.out}"

    if args.command == "stubs":
        if not args.docs.is_dir():
            return False, f"Documentation path is not a directory: {args.docs}"
        return True, ""

    if args.root is None:
        args.root = Path(".")
    args.root = args.root.resolve()

    for file in args.files:
        if not file.is_file():
            return False, f"Lua file not found: {file}"
        if not file.resolve().is_relative_to(args.root):
            return False, f"Lua file is not inside the root directory {args.root}: {file}"

    return True, ""


def run_stubs(args: argparse.Namespace) -> int:
    overrides = {
        key: value
        for key, value in (
            ("title", args.title),
            ("website", args.website),
            ("docs_url", args.docs_url),
        )
        if value is not None
    }
    report = generate_stubs(args.docs, args.out, StubConfig(**overrides))
    for failure in report.failures:
        print(f"{failure.path}: {failure.error}", file=sys.stderr)
    if args.verbose:
        print(
            f"Wrote {len(report.written)} stub(s) to: {args.out}",
            file=sys.stderr,
        )
    return 0 if report.ok else 1


def run_code(args: argparse.Namespace) -> int:
    config = GenerationConfig(force_global=args.force_global, disable=args.disable)
    renderer = renderer_for()
    parser = default_parser()
    failed = False
    for file in args.files:
        file_name = file.resolve().relative_to(args.root).as_posix()
        try:
            target = write_code(
                args.out,
                file_name,
                file.read_text(encoding="utf-8"),
                config,
                renderer=renderer,
                parser=parser,
            )
        except GeneratorError as err:
            failed = True
            print(f"{file}: {err.message}", file=sys.stderr)
            for syntax_error in err.errors:
                print(f"{file}:{syntax_error}", file=sys.stderr)
            continue
        except (StubGenError, OSError, UnicodeDecodeError) as err:
            failed = True
            print(f"{file}: {err}", file=sys.stderr)
            continue
        if target and args.verbose:
            print(f"Output written to: {target}", file=sys.stderr)
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI application."""
    parser = create_parser()
    args = parser.parse_args(argv)
    ok, err = validate_args(args)
    if not ok:
        print(err, file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.verbose:
        lark_logger.setLevel(logging.DEBUG)

    if args.command == "stubs":
        return run_stubs(args)
    return run_code(args)


if __name__ == "__main__":
    sys.exit(main())
