"""
Core logic for markcat package.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, TextIO, Tuple

import pathspec
from colorama import Fore, Style, just_fix_windows_console

# Leaves stdout untouched: it may carry the document itself.
just_fix_windows_console()

# Exceptions
class MarkcatError(Exception): ...
class InvalidRootError(MarkcatError): ...
class TraversalError(MarkcatError): ...
class ConfigFileError(MarkcatError): ...
class OutputError(MarkcatError): ...
class FileReadError(MarkcatError): ...

# Defaults & helpers
NOEXT_TOKEN = "noext"

# Read per directory; later files take precedence over earlier ones.
IGNORE_FILENAMES: Tuple[str, ...] = (".gitignore", ".ignore")


def report(msg: str, colour: str = "") -> None:
    if colour and sys.stderr.isatty():
        msg = colour + msg + Style.RESET_ALL
    print(f"[markcat] {msg}", file=sys.stderr)


def file_extension(path: str) -> Optional[str]:
    """Extension of the last path segment without the dot, or ``None``.

    ``.gitignore`` has no extension, ``..foo`` has ``foo`` and ``name.``
    has an empty one.
    """
    name = os.path.basename(path)
    if name == "..":
        return None
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return None
    return ext


# Filter specifications
class Filter:
    """Allow/deny criteria parsed from a comma-separated specification."""

    def __init__(self) -> None:
        self.exts_lower: Set[str] = set()
        self.names: Set[str] = set()
        self.noext = False

    def __repr__(self) -> str:
        return (
            f"Filter(exts_lower={sorted(self.exts_lower)!r}, "
            f"names={sorted(self.names)!r}, noext={self.noext!r})"
        )


def parse_filter(spec: Optional[str]) -> Optional[Filter]:
    """Parse ``"rs,.md,LICENSE,noext"`` style input; ``None`` means no filter.

    Leading-dot tokens are extensions only. Bare tokens count both as an
    extension (case-insensitive) and as an exact file name (case-sensitive).
    """
    if spec is None:
        return None
    f = Filter()
    for token in (t.strip() for t in spec.split(",")):
        if not token:
            continue
        if token.lower() == NOEXT_TOKEN:
            f.noext = True
        elif token.startswith("."):
            f.exts_lower.add(token[1:].lower())
        else:
            f.exts_lower.add(token.lower())
            f.names.add(token)
    return f


def matches_filter(path: str, f: Filter) -> bool:
    name = os.path.basename(path)
    ext = file_extension(path)
    if ext is not None and ext.lower() in f.exts_lower:
        return True
    if name in f.names:
        return True
    return f.noext and ext is None


# Ignore-file utilities
class IgnoreRules:
    """Gitignore-style patterns from one source, relative to its directory."""

    def __init__(self, lines: Iterable[str]) -> None:
        lines = [ln for ln in lines if ln.strip()]
        self.spec = pathspec.GitIgnoreSpec.from_lines(lines)
        # "dir/**" matches what is inside dir, never dir itself
        self.dir_spec = pathspec.GitIgnoreSpec.from_lines(
            [ln for ln in lines if not ln.rstrip().rstrip("/").endswith("/**")]
        )

    def check(self, rel: str, is_dir: bool) -> Optional[bool]:
        """``True`` ignored, ``False`` re-included by negation, ``None`` no match."""
        if is_dir:
            result = self.dir_spec.check_file(rel + "/")
        else:
            result = self.spec.check_file(rel)
        if result.index is None:
            return None
        return bool(result.include)


Matcher = Tuple[str, IgnoreRules]


def load_ignore_rules(directory: str) -> Optional[IgnoreRules]:
    """Compile the ignore files found directly in *directory*, if any."""
    lines: List[str] = []
    for name in IGNORE_FILENAMES:
        ignore_path = os.path.join(directory, name)
        if not os.path.isfile(ignore_path):
            continue
        try:
            with open(ignore_path, "r", encoding="utf-8") as fh:
                lines.extend(fh.read().splitlines())
        except (OSError, UnicodeDecodeError) as e:
            raise TraversalError(f"Could not read ignore file '{ignore_path}': {e}")
    if not lines:
        return None
    return IgnoreRules(lines)


def load_extra_patterns(config_path: Path) -> IgnoreRules:
    if not config_path.exists():
        raise ConfigFileError(f"Ignore file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            lines = [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read ignore file '{config_path}': {e}")
    return IgnoreRules(lines)


def _ancestor_matchers(root: str) -> List[Matcher]:
    # Outermost first, so nearer ignore files win.
    matchers: List[Matcher] = []
    parent = os.path.dirname(os.path.abspath(root))
    while True:
        rules = load_ignore_rules(parent)
        if rules is not None:
            matchers.append((parent, rules))
        up = os.path.dirname(parent)
        if up == parent:
            break
        parent = up
    matchers.reverse()
    return matchers


def _is_ignored(path: str, is_dir: bool, matchers: List[Matcher]) -> bool:
    # Deepest matcher with an opinion wins.
    for base, rules in reversed(matchers):
        rel = os.path.relpath(path, base).replace(os.sep, "/")
        include = rules.check(rel, is_dir)
        if include is not None:
            return bool(include)
    return False


# Tree walking
def walk_files(
    root: str,
    use_ignore: bool = True,
    extra_rules: Optional[IgnoreRules] = None,
) -> Iterator[str]:
    """
    Yield every regular file under *root*, depth first, in name order.

    Paths are joined onto *root* as given, so a relative root produces
    relative paths. With *use_ignore* hidden entries are skipped, and the
    ``.gitignore``/``.ignore`` files of *root*'s ancestors and of every
    walked directory apply to their subtrees; ignored directories are
    pruned. Symlinks are never followed or yielded. *extra_rules* applies
    relative to *root* whether or not *use_ignore* is set.
    """
    if os.path.isfile(root):
        yield root
        return
    if not os.path.exists(root):
        raise InvalidRootError(f"Root directory '{root}' does not exist")
    if not os.path.isdir(root):
        raise InvalidRootError(f"Root path '{root}' is not a file or directory")

    matchers: List[Matcher] = []
    if extra_rules is not None:
        matchers.append((root, extra_rules))
    if use_ignore:
        matchers.extend(_ancestor_matchers(root))
    yield from _walk_dir(root, use_ignore, matchers)


def _walk_dir(directory: str, use_ignore: bool, matchers: List[Matcher]) -> Iterator[str]:
    if use_ignore:
        rules = load_ignore_rules(directory)
        if rules is not None:
            matchers = matchers + [(directory, rules)]

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise TraversalError(f"Could not read directory '{directory}': {e}")

    for entry in entries:
        if use_ignore and entry.name.startswith("."):
            continue
        path = os.path.join(directory, entry.name)
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as e:
            raise TraversalError(f"Could not stat '{path}': {e}")
        if not (is_dir or is_file):
            continue
        if matchers and _is_ignored(path, is_dir, matchers):
            continue
        if is_dir:
            yield from _walk_dir(path, use_ignore, matchers)
        else:
            yield path


# Output
def open_output(out_path: Optional[Path]) -> TextIO:
    """Return stdout, or *out_path* created/truncated for writing.

    Either way the sink writes UTF-8 with no newline translation.
    """
    if out_path is None:
        reconfigure = getattr(sys.stdout, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8", newline="\n")
        return sys.stdout
    try:
        return out_path.open("w", encoding="utf-8", newline="\n")
    except OSError as e:
        raise OutputError(f"Could not create output file '{out_path}': {e}")


def close_output(out: TextIO) -> None:
    """Flush stdout, or close an output file."""
    try:
        if out is sys.stdout:
            out.flush()
        else:
            out.close()
    except OSError as e:
        raise OutputError(f"Could not write output: {e}") from e


def render_file(path: str, trim: bool, out: TextIO) -> None:
    """Write *path* as a labeled, fenced markdown block to *out*."""
    try:
        with open(path, "r", encoding="utf-8", newline="") as fh:
            content = fh.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"Could not read '{path}': {e}")

    if trim:
        content = content.strip()

    ext = file_extension(path)
    fence = f"```{ext}" if ext else "```"
    try:
        out.write(f"`{path}`\n{fence}\n{content}\n```\n")
    except OSError as e:
        raise OutputError(f"Could not write output: {e}") from e


# Main driver
def process_directory(
    directory: str,
    out: TextIO,
    ignore_gitignore: bool = False,
    trim: bool = False,
    whitelist: Optional[str] = None,
    blacklist: Optional[str] = None,
    extra_rules: Optional[IgnoreRules] = None,
    skip_path: Optional[str] = None,
    verbose: bool = False,
) -> int:
    """
    Render every accepted file under *directory* to *out*, in walk order.

    A file is accepted when it matches *whitelist* (if given) and does not
    match *blacklist* (if given). *skip_path* names a file never rendered,
    normally the output file itself. Returns the number of files rendered;
    the first error aborts the run.
    """
    allow = parse_filter(whitelist)
    deny = parse_filter(blacklist)
    skip_real = os.path.realpath(skip_path) if skip_path else None

    rendered = 0
    skipped = 0
    for path in walk_files(directory, use_ignore=not ignore_gitignore, extra_rules=extra_rules):
        if skip_real is not None and os.path.realpath(path) == skip_real:
            continue
        if allow is not None and not matches_filter(path, allow):
            skipped += 1
            if verbose:
                report(f"- Not in allow-list: {path}", Fore.YELLOW)
            continue
        if deny is not None and matches_filter(path, deny):
            skipped += 1
            if verbose:
                report(f"- In deny-list: {path}", Fore.YELLOW)
            continue
        render_file(path, trim, out)
        rendered += 1

    if verbose:
        report(f"Done. {rendered} files rendered, {skipped} filtered out.", Fore.GREEN)
    return rendered
