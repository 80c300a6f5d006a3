"""
CLI entrypoint for markcat package.
"""
import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core import (
    close_output,
    load_extra_patterns,
    open_output,
    process_directory,
    report,
    MarkcatError,
)

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="markcat",
        description="Converts a project directory to markdown format.",
    )
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    where = p.add_mutually_exclusive_group()
    where.add_argument(
        "path_pos",
        nargs="?",
        metavar="DIR",
        help="Directory to convert (alternative to -p/--path)",
    )
    where.add_argument(
        "-p",
        "--path",
        metavar="DIR",
        help="Directory to convert. Positional DIR is also supported",
    )
    p.add_argument(
        "-i",
        "--ignore-gitignore",
        action="store_true",
        help="Do not apply .gitignore or standard ignore filters",
    )
    p.add_argument(
        "-t",
        "--trim",
        action="store_true",
        help="Trim leading and trailing whitespace in file contents",
    )
    p.add_argument(
        "-w",
        "--whitelist",
        metavar="ITEMS",
        help="Comma-separated allow-list of extensions, exact filenames, "
        "and/or 'noext' (e.g. 'rs,md,LICENSE,noext')",
    )
    p.add_argument(
        "-b",
        "--blacklist",
        metavar="ITEMS",
        help="Comma-separated deny-list of extensions, exact filenames, and/or 'noext'",
    )
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        metavar="FILE",
        help="Write output to FILE instead of stdout (creates or truncates)",
    )
    p.add_argument(
        "--ignore-file",
        type=Path,
        metavar="FILE",
        help="Path to a file with extra ignore patterns (one per line)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Progress messages on stderr")
    return p.parse_args(argv)

def _silence_stdout() -> None:
    # The interpreter flushes stdout again at exit.
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())

def main(argv: Optional[List[str]] = None) -> None:
    try:
        ns = _parse_args(argv)
        directory = ns.path or ns.path_pos or "."

        extra_rules = None
        if ns.ignore_file:
            extra_rules = load_extra_patterns(ns.ignore_file)
            if ns.verbose:
                report(f"Loaded extra patterns from {ns.ignore_file}")

        out = open_output(ns.output)
        try:
            if ns.verbose:
                report(f"Scanning {directory} …")
            process_directory(
                directory,
                out,
                ignore_gitignore=ns.ignore_gitignore,
                trim=ns.trim,
                whitelist=ns.whitelist,
                blacklist=ns.blacklist,
                extra_rules=extra_rules,
                skip_path=str(ns.output) if ns.output else None,
                verbose=ns.verbose,
            )
        finally:
            close_output(out)

    except MarkcatError as e:
        if isinstance(e.__cause__, BrokenPipeError):
            _silence_stdout()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
