"""Exporting an analysis to JSON and reading it back."""

from __future__ import annotations

import gc
import io
import json
import logging
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, List, Optional, TextIO

from gdu.analyzer import ParallelAnalyzer
from gdu.common import EB, GB, KB, MB, PB, TB, UI, format_number
from gdu.items import Dir, File, SortBy, sort_files

log = logging.getLogger(__name__)

PROGRAM_NAME = "gdu"
PROGRAM_VERSION = "development"

_RED = "\x1b[31;1m"
_ORANGE = "\x1b[33;1m"
_RESET = "\x1b[0m"
_SPINNER = "⠇⠏⠋⠙⠹⠸⠼⠴⠦⠧"
_EMPTY_ROW = "\r" + " " * 100
_TICK = 0.1

_SIZE_UNITS = (
    (EB, "EiB"),
    (PB, "PiB"),
    (TB, "TiB"),
    (GB, "GiB"),
    (MB, "MiB"),
    (KB, "KiB"),
)


class ExportUI(UI):
    """Interface that scans a path and writes the result as JSON."""

    def __init__(
        self,
        output: TextIO,
        export_output: TextIO,
        use_colors: bool = False,
        show_progress: bool = False,
        enable_gc: bool = False,
    ) -> None:
        super().__init__(
            analyzer=ParallelAnalyzer(),
            use_colors=use_colors,
            show_progress=show_progress,
            enable_gc=enable_gc,
        )
        self.output = output
        self.export_output = export_output
        self._written = threading.Event()
        self._analyzed = threading.Event()

    def start_ui_loop(self) -> None:
        """Flush the progress output; the export itself ends in ``analyze_path``."""
        flush = getattr(self.output, "flush", None)
        if callable(flush):
            flush()

    def list_devices(self, getter: Any) -> None:
        """Listing devices cannot be exported."""
        log.warning("Listing devices with %r requested while exporting", getter)
        raise RuntimeError("Exporting devices list is not supported")

    def read_analysis(self, stream: Any) -> None:
        """Reading an analysis cannot be combined with exporting."""
        log.warning("Reading analysis from %r requested while exporting", stream)
        raise RuntimeError("Reading analysis is not possible while exporting")

    def analyze_path(self, path: str, parent_dir: Optional[Dir] = None) -> None:
        """Scan ``path`` recursively and write the JSON report."""
        self._written.clear()
        self._analyzed.clear()
        progress_thread: Optional[threading.Thread] = None
        if self.show_progress:
            progress_thread = threading.Thread(target=self._update_progress, daemon=True)
            progress_thread.start()

        try:
            directory = self._analyze(path)
            self._analyzed.set()
            sort_files(directory.files, SortBy.USAGE)

            buffer = io.StringIO()
            buffer.write(
                f'[1,2,{{"progname":"{PROGRAM_NAME}","progver":"{PROGRAM_VERSION}",'
                f'"timestamp":{int(time.time())}}},\n'
            )
            directory.encode_json(buffer, True)
            buffer.write("]\n")
            self.export_output.write(buffer.getvalue())
            self._close_export_output()
        finally:
            self._written.set()
            if progress_thread is not None:
                progress_thread.join()

    def format_size(self, size: int) -> str:
        """Return ``size`` in binary units, highlighted when colors are on."""
        fsize = float(size)
        for limit, unit in _SIZE_UNITS:
            if fsize >= limit:
                return self._paint(_ORANGE, f"{fsize / limit:.1f}") + " " + unit
        return self._paint(_ORANGE, str(size)) + " B"

    def _analyze(self, path: str) -> Dir:
        gc_was_enabled = gc.isenabled()
        if not self.enable_gc:
            gc.disable()
        try:
            directory = self.analyzer.analyze_dir(path, self.create_ignore_func())
            directory.update_stats({})
        finally:
            if gc_was_enabled:
                gc.enable()
        return directory

    def _close_export_output(self) -> None:
        stream = self.export_output
        if stream in (sys.stdout, sys.__stdout__) or not isinstance(stream, io.IOBase):
            return
        try:
            stream.fileno()
        except (OSError, ValueError):
            return
        stream.close()

    def _paint(self, color: str, text: str) -> str:
        if not self.use_colors:
            return text
        return f"{color}{text}{_RESET}"

    def _update_progress(self) -> None:
        waiting_for_write = False
        tick = 0
        while True:
            self.output.write(_EMPTY_ROW)
            if self._written.is_set():
                self.output.write("\r")
                return
            if not waiting_for_write and self._analyzed.is_set():
                self.output.write("\r")
                waiting_for_write = True

            self.output.write(f"\r {_SPINNER[tick]} ")
            if waiting_for_write:
                self.output.write("Writing output file...")
            else:
                progress = self.analyzer.get_progress()
                self.output.write(
                    "Scanning... Total items: "
                    + self._paint(_RED, format_number(progress.item_count))
                    + " size: "
                    + self.format_size(progress.total_size)
                )
            self._written.wait(_TICK)
            tick = (tick + 1) % len(_SPINNER)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _timestamp(value: Any) -> Optional[datetime]:
    number = _number(value)
    if number is None:
        return None
    return datetime.fromtimestamp(int(number), tz=timezone.utc)


def read_analysis(stream: Any) -> Dir:
    """Read a JSON report from ``stream`` and return its directory tree."""
    content = stream.read()
    if isinstance(content, (bytes, bytearray)):
        content = content.decode("utf-8")
    data = json.loads(content)

    if not isinstance(data, list):
        raise ValueError("JSON file does not contain top level array")
    if len(data) < 4:
        raise ValueError("Top level array must have at least 4 items")
    items = data[3]
    if not isinstance(items, list):
        raise ValueError("Array of maps not found in the top level array on 4th position")
    return _process_dir(items)


def _process_file(item: dict, parent: Dir) -> File:
    name = item.get("name")
    if not isinstance(name, str):
        raise ValueError("File name is not a string")
    file = File(name=name, parent=parent)
    asize = _number(item.get("asize"))
    if asize is not None:
        file.size = int(asize)
    dsize = _number(item.get("dsize"))
    if dsize is not None:
        file.usage = int(dsize)
    file.mtime = _timestamp(item.get("mtime"))
    file.flag = "@" if isinstance(item.get("notreg"), bool) else " "
    ino = _number(item.get("ino"))
    if ino is not None:
        file.mli = int(ino)
    if isinstance(item.get("hlnkc"), bool):
        file.flag = "H"
    return file


def _process_dir(items: List[Any]) -> Dir:
    if not items or not isinstance(items[0], dict):
        raise ValueError("Directory item is not a map")
    header = items[0]
    name = header.get("name")
    if not isinstance(name, str):
        raise ValueError("Directory name is not a string")

    directory = Dir(flag=" ", mtime=_timestamp(header.get("mtime")))
    base, slash, tail = name.rpartition("/")
    if slash:
        directory.name = tail
        directory.base_path = base + slash
    else:
        directory.name = name

    for entry in items[1:]:
        if isinstance(entry, dict):
            directory.files.append(_process_file(entry, directory))
        elif isinstance(entry, list):
            subdir = _process_dir(entry)
            subdir.parent = directory
            directory.files.append(subdir)
    return directory