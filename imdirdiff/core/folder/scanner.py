"""
Directory scanner that builds path indexes of image files.

Provides traversal of one root with:
- Recursive scanning with symlink-loop detection
- Image extension filtering
- Gitignore-style exclude patterns
- Hidden file handling
- Fatal reporting of unreadable trees
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from imdirdiff.core.errors import TraversalError
from imdirdiff.core.models import PathIndex, RelativePath, normalize_relative_path


DEFAULT_IMAGE_EXTENSIONS = ('gif', 'jpg', 'jpeg', 'png', 'webp')


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lowercase extensions without the leading dot."""
    return frozenset(ext.strip().lstrip('.').lower() for ext in extensions if ext.strip())


@dataclass
class ScanOptions:
    """Options for indexing one directory tree."""
    extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS
    follow_symlinks: bool = True
    include_hidden: bool = True
    exclude_patterns: list[str] = field(default_factory=list)

    def accepts_extension(self, filename: str) -> bool:
        """Check the file extension against the configured image types."""
        _, dot, ext = filename.rpartition('.')
        if not dot or not ext:
            return False
        return ext.lower() in normalize_extensions(self.extensions)


@dataclass
class ScanProgress:
    """Progress information for scanning."""
    root_path: Path
    current_path: str
    files_found: int


class PatternMatcher:
    """
    Gitignore-style pattern matcher.

    Supports:
    - * (any characters except /)
    - ** (any characters including /)
    - ? (single character)
    - [abc] and [!abc] (character classes)
    - ! prefix (re-include)
    - / prefix (anchored to the root)
    - / suffix (directories only)
    """

    def __init__(self, patterns: Iterable[str]):
        # (regex, dir_only, negated) in declaration order
        self._rules: list[tuple[re.Pattern, bool, bool]] = []
        for pattern in patterns:
            rule = self._compile(pattern)
            if rule is not None:
                self._rules.append(rule)

    def __bool__(self) -> bool:
        return bool(self._rules)

    @classmethod
    def _compile(cls, pattern: str) -> Optional[tuple[re.Pattern, bool, bool]]:
        pattern = pattern.strip()
        if not pattern or pattern.startswith('#'):
            return None

        negated = pattern.startswith('!')
        if negated:
            pattern = pattern[1:]

        dir_only = pattern.endswith('/')
        if dir_only:
            pattern = pattern.rstrip('/')

        anchored = pattern.startswith('/') or '/' in pattern
        pattern = pattern.lstrip('/')
        if not pattern:
            return None

        body = cls._translate(pattern)
        prefix = '^' if anchored else '(?:^|/)'
        return re.compile(prefix + body + '(?:/.*)?$'), dir_only, negated

    @staticmethod
    def _translate(pattern: str) -> str:
        """Translate glob syntax into a regular expression body."""
        out = []
        i = 0
        n = len(pattern)

        while i < n:
            c = pattern[i]
            if c == '*':
                if pattern.startswith('**/', i):
                    out.append('(?:.*/)?')
                    i += 3
                    continue
                if pattern.startswith('**', i):
                    out.append('.*')
                    i += 2
                    continue
                out.append('[^/]*')
            elif c == '?':
                out.append('[^/]')
            elif c == '[':
                end = pattern.find(']', i + 1)
                if end == -1:
                    out.append(re.escape(c))
                else:
                    chars = pattern[i + 1:end]
                    if chars.startswith('!'):
                        chars = '^' + chars[1:]
                    out.append('[' + chars.replace('\\', '\\\\') + ']')
                    i = end
            else:
                out.append(re.escape(c))
            i += 1

        return ''.join(out)

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """
        Check whether a relative path is excluded.

        The last matching rule wins, so '!' rules re-include paths
        excluded by earlier ones.
        """
        path = path.replace(os.sep, '/').lstrip('/')
        excluded = False
        for regex, dir_only, negated in self._rules:
            if dir_only and not is_dir:
                continue
            if regex.search(path):
                excluded = not negated
        return excluded


class FolderScanner:
    """
    Builds a PathIndex for one directory root.

    Any error raised by the filesystem while walking is fatal: a partial
    index cannot be trusted for set reconciliation.
    """

    def __init__(self, options: Optional[ScanOptions] = None):
        self.options = options or ScanOptions()

    def build_index(
        self,
        root_path: Path | str,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> PathIndex:
        """
        Index every image file under a root.

        Args:
            root_path: Directory to traverse
            progress_callback: Called once per visited directory

        Returns:
            PathIndex keyed by normalized relative path

        Raises:
            TraversalError: If the root is missing, not a directory or
                any directory below it cannot be read
        """
        root_path = Path(root_path)
        check_directory(root_path)
        root_path = root_path.resolve()

        entries: dict[RelativePath, Path] = {}
        for rel_path, abs_path in self._walk(root_path, progress_callback, entries):
            entries[rel_path] = abs_path

        logging.debug(f"FolderScanner - Indexed {len(entries)} images under {root_path}")
        return PathIndex(root_path, entries)

    def _walk(
        self,
        root_path: Path,
        progress_callback: Optional[Callable[[ScanProgress], None]],
        found: dict[RelativePath, Path]
    ):
        options = self.options
        matcher = PatternMatcher(options.exclude_patterns)
        # Real paths of each directory's logical ancestors, for loop detection
        chains: dict[str, frozenset[str]] = {
            str(root_path): frozenset({os.path.realpath(root_path)})
        }

        def on_walk_error(error: OSError):
            logging.error(f"FolderScanner - Walk error at {error.filename}: {error}")
            raise TraversalError(
                f"Cannot read {error.filename}: {error.strerror or error}",
                error.filename
            ) from error

        for dirpath, dirnames, filenames in os.walk(
            root_path,
            topdown=True,
            followlinks=options.follow_symlinks,
            onerror=on_walk_error
        ):
            current_path = Path(dirpath)
            rel_dir = current_path.relative_to(root_path)
            chain = chains.pop(dirpath, frozenset())

            kept_dirs = []
            for dirname in sorted(dirnames):
                if not options.include_hidden and dirname.startswith('.'):
                    continue
                rel_path = (rel_dir / dirname).as_posix()
                if matcher and matcher.matches(rel_path, True):
                    continue

                dir_full_path = current_path / dirname
                real = os.path.realpath(dir_full_path)
                if real in chain:
                    logging.warning(f"FolderScanner - Skipping symlink loop at {dir_full_path}")
                    continue
                chains[str(dir_full_path)] = chain | {real}
                kept_dirs.append(dirname)

            # Prune in place to control recursion
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if not options.include_hidden and filename.startswith('.'):
                    continue
                if not options.accepts_extension(filename):
                    continue

                file_full_path = current_path / filename
                rel_path = normalize_relative_path((rel_dir / filename).as_posix())
                if matcher and matcher.matches(rel_path, False):
                    continue

                if not file_full_path.is_file():
                    # Broken symlink or special file
                    logging.debug(f"FolderScanner - Ignoring non-regular file {file_full_path}")
                    continue

                yield rel_path, file_full_path

            if progress_callback:
                progress_callback(ScanProgress(
                    root_path=root_path,
                    current_path=rel_dir.as_posix(),
                    files_found=len(found),
                ))


def check_directory(path: Path | str) -> None:
    """
    Verify that a path is an existing, readable directory.

    Raises:
        TraversalError: Otherwise
    """
    path = Path(path)
    try:
        is_dir = path.is_dir()
        exists = is_dir or path.exists()
    except OSError as e:
        raise TraversalError(f"Cannot access {path}: {e}", path) from e

    if not exists:
        logging.error(f"FolderScanner - Root path not found: {path}")
        raise TraversalError(f"Directory not found: {path}", path)
    if not is_dir:
        logging.error(f"FolderScanner - Root path is not a directory: {path}")
        raise TraversalError(f"Not a directory: {path}", path)
    if not os.access(path, os.R_OK | os.X_OK):
        logging.error(f"FolderScanner - Root path is not readable: {path}")
        raise TraversalError(f"Permission denied: {path}", path)
