"""Parallel directory tree analysis."""

from __future__ import annotations

import dataclasses
import logging
import os
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from gdu.items import Dir, File

log = logging.getLogger(__name__)

DEV_BLOCK_SIZE = 512

IgnoreFunc = Callable[[str, str], bool]


@dataclass
class CurrentProgress:
    """Running totals of an analysis."""

    current_item_name: str = ""
    item_count: int = 0
    total_size: int = 0


def _from_ns(nanoseconds: int) -> datetime:
    seconds, rest = divmod(nanoseconds, 10**9)
    return datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(microseconds=rest // 1000)


def _basename(path: str) -> str:
    if not path:
        return "."
    separators = os.sep + (os.altsep or "")
    stripped = path.rstrip(separators)
    if not stripped:
        return os.sep
    return os.path.basename(stripped)


def _dirname(path: str) -> str:
    return os.path.normpath(os.path.dirname(path) or ".")


def _dir_flag(error: Optional[OSError], items: int) -> str:
    if error is not None:
        return "!"
    if items == 0:
        return "e"
    return " "


def _file_flag(info: os.stat_result) -> str:
    if stat.S_ISLNK(info.st_mode) or stat.S_ISSOCK(info.st_mode):
        return "@"
    return " "


def _set_file_attrs(file: File, info: os.stat_result) -> None:
    if not hasattr(info, "st_blocks"):
        return
    file.usage = info.st_blocks * DEV_BLOCK_SIZE
    file.mtime = _from_ns(info.st_mtime_ns)
    if info.st_nlink > 1:
        file.mli = info.st_ino


def _set_dir_attrs(directory: Dir, path: str) -> None:
    try:
        info = os.stat(path)
    except OSError:
        return
    if hasattr(info, "st_blocks"):
        directory.mtime = _from_ns(info.st_mtime_ns)


class _Pending:
    """Counter of outstanding tasks that can be waited on from any thread."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self) -> None:
        with self._cond:
            self._count += 1

    def done(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._count == 0)


class ParallelAnalyzer:
    """Walks a directory tree using a pool of worker threads."""

    def __init__(self, max_workers: Optional[int] = None) -> None:
        self._max_workers = max_workers or 3 * (os.cpu_count() or 1)
        self._progress = CurrentProgress()
        self._progress_lock = threading.Lock()
        self._tree_lock = threading.Lock()
        self._done = threading.Event()
        self._pending = _Pending()
        self._ignore: Optional[IgnoreFunc] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._errors: List[BaseException] = []

    def analyze_dir(self, path: str, ignore: Optional[IgnoreFunc] = None) -> Dir:
        """Scan ``path`` recursively and return its directory tree."""
        self._ignore = ignore
        self._done.clear()
        self._errors = []
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            self._executor = executor
            root = self._process_dir(path)
            self._pending.wait()
        self._executor = None
        root.base_path = _dirname(path)
        self._done.set()
        if self._errors:
            raise self._errors[0]
        return root

    def get_progress(self) -> CurrentProgress:
        """Return a snapshot of the current progress."""
        with self._progress_lock:
            return dataclasses.replace(self._progress)

    def wait_done(self, timeout: Optional[float] = None) -> bool:
        """Block until the last analysis finished; False on timeout."""
        return self._done.wait(timeout)

    def reset_progress(self) -> None:
        """Zero the progress counters."""
        with self._progress_lock:
            self._progress = CurrentProgress()

    def _is_ignored(self, name: str, path: str) -> bool:
        return self._ignore is not None and bool(self._ignore(name, path))

    def _add_progress(self, path: str, items: int, size: int) -> None:
        with self._progress_lock:
            self._progress.current_item_name = path
            self._progress.item_count += items
            self._progress.total_size += size

    def _process_subdir(self, path: str, parent: Dir) -> None:
        try:
            subdir = self._process_dir(path)
            subdir.parent = parent
            with self._tree_lock:
                parent.files.append(subdir)
        except BaseException as exc:  # keep the pending count consistent
            log.error("Failed to process %s: %s", path, exc)
            with self._tree_lock:
                self._errors.append(exc)
        finally:
            self._pending.done()

    def _process_dir(self, path: str) -> Dir:
        error: Optional[OSError] = None
        try:
            with os.scandir(path) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            log.warning("%s", exc)
            entries = []
            error = exc

        directory = Dir(name=_basename(path), flag=_dir_flag(error, len(entries)), item_count=1)
        _set_dir_attrs(directory, path)

        total_size = 0
        subdirs: List[str] = []
        for entry in entries:
            entry_path = os.path.join(path, entry.name)
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            if is_dir:
                if not self._is_ignored(entry.name, entry_path):
                    subdirs.append(entry_path)
                continue
            try:
                info = entry.stat(follow_symlinks=False)
            except OSError as exc:
                log.warning("%s", exc)
                continue
            file = File(name=entry.name, flag=_file_flag(info), size=info.st_size, parent=directory)
            _set_file_attrs(file, info)
            total_size += info.st_size
            directory.files.append(file)

        assert self._executor is not None
        for subdir_path in subdirs:
            self._pending.add()
            self._executor.submit(self._process_subdir, subdir_path, directory)

        self._add_progress(path, len(entries), total_size)
        return directory