"""Settings shared by the user interfaces: ignoring rules and number formatting."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Set

log = logging.getLogger(__name__)

IgnoreFunc = Callable[[str, str], bool]

KB = float(1 << 10)
MB = float(1 << 20)
GB = float(1 << 30)
TB = float(1 << 40)
PB = float(1 << 50)
EB = float(1 << 60)

K = 1_000
M = 1_000_000
G = 1_000_000_000


def create_ignore_pattern(paths: Iterable[str]) -> "re.Pattern[str]":
    """Combine path patterns into one expression; raises re.error on a bad one."""
    groups = []
    for path in paths:
        re.compile(path)
        groups.append(f"({path})")
    return re.compile("^" + "|".join(groups) + "$")


def format_number(n: int) -> str:
    """Return ``n`` with a comma as thousands separator."""
    return f"{n:,}"


@dataclass
class UI:
    """State common to all user interfaces."""

    analyzer: Any = None
    ignore_dir_paths: Set[str] = field(default_factory=set)
    ignore_dir_path_patterns: Optional["re.Pattern[str]"] = None
    ignore_hidden: bool = False
    use_colors: bool = False
    show_progress: bool = False
    show_apparent_size: bool = False
    enable_gc: bool = False

    def set_ignore_dir_paths(self, paths: Iterable[str]) -> None:
        """Ignore directories with exactly these paths."""
        paths = list(paths)
        log.info("Ignoring dirs %s", ", ".join(paths))
        self.ignore_dir_paths = set(paths)

    def set_ignore_dir_patterns(self, paths: Iterable[str]) -> None:
        """Ignore directories whose paths match these patterns."""
        paths = list(paths)
        log.info("Ignoring dir patterns %s", ", ".join(paths))
        self.ignore_dir_path_patterns = create_ignore_pattern(paths)

    def set_ignore_from_file(self, ignore_file: str) -> None:
        """Read ignore patterns, one per line, from ``ignore_file``."""
        log.info("Reading ignoring dir patterns from file '%s'", ignore_file)
        with open(ignore_file, encoding="utf-8") as file:
            paths: List[str] = file.read().splitlines()
        self.ignore_dir_path_patterns = create_ignore_pattern(paths)

    def set_ignore_hidden(self, value: bool) -> None:
        """Set whether directories starting with a dot are ignored."""
        log.info("Ignoring hidden dirs")
        self.ignore_hidden = value

    def should_dir_be_ignored(self, name: str, path: str) -> bool:
        """True when ``path`` is one of the ignored paths."""
        ignored = path in self.ignore_dir_paths
        if ignored:
            log.info("Directory %s ignored", path)
        return ignored

    def should_dir_be_ignored_using_pattern(self, name: str, path: str) -> bool:
        """True when ``path`` matches the ignore patterns."""
        pattern = self.ignore_dir_path_patterns
        ignored = pattern is not None and pattern.search(path) is not None
        if ignored:
            log.info("Directory %s ignored", path)
        return ignored

    def is_hidden_dir(self, name: str, path: str) -> bool:
        """True when the directory name begins with a dot."""
        ignored = name.startswith(".")
        if ignored:
            log.info("Directory %s ignored", path)
        return ignored

    def create_ignore_func(self) -> IgnoreFunc:
        """Return a predicate combining all configured ignore rules."""
        checks: List[IgnoreFunc] = []
        if self.ignore_dir_paths:
            checks.append(self.should_dir_be_ignored)
        if self.ignore_dir_path_patterns is not None:
            checks.append(self.should_dir_be_ignored_using_pattern)
        if self.ignore_hidden:
            checks.append(self.is_hidden_dir)

        if len(checks) == 1:
            return checks[0]

        def ignore(name: str, path: str) -> bool:
            return any(check(name, path) for check in checks)

        return ignore