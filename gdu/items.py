"""File-system items (files and directories) and operations on them."""

from __future__ import annotations

import enum
import json
import math
import os
import shutil
import stat
from dataclasses import dataclass, field
from datetime import datetime, timezone
from operator import attrgetter
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Tuple

DIR_BASE_SIZE = 4096

_MIN_TIME = datetime.min.replace(tzinfo=timezone.utc)

_JSON_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


class Writer(Protocol):
    """Anything with a text ``write`` method."""

    def write(self, text: str) -> object:  # pragma: no cover - protocol
        ...


HardLinkedItems = Dict[int, List["File"]]


class SortBy(enum.Enum):
    """Attribute by which items are ordered."""

    USAGE = "usage"
    SIZE = "size"
    ITEM_COUNT = "item_count"
    NAME = "name"
    MTIME = "mtime"


def _json_string(value: str) -> str:
    try:
        raw = value.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        raw = value.encode("utf-8", "replace")
    encoded = json.dumps(raw.decode("utf-8", "replace"), ensure_ascii=False)
    for char, escape in _JSON_ESCAPES:
        encoded = encoded.replace(char, escape)
    return encoded


def _unix(moment: datetime) -> int:
    return math.floor(moment.timestamp())


def _join(base: str, name: str) -> str:
    joined = os.path.join(base, name)
    return os.path.normpath(joined) if joined else ""


class Files(list):
    """List of items, compared by identity."""

    def index_of(self, item: "File") -> Optional[int]:
        """Return the position of ``item`` or None."""
        return next((i for i, entry in enumerate(self) if entry is item), None)

    def find_by_name(self, name: str) -> Optional[int]:
        """Return the position of the first item called ``name`` or None."""
        return next((i for i, entry in enumerate(self) if entry.name == name), None)

    def remove_item(self, item: "File") -> bool:
        """Remove ``item``; return whether it was present."""
        index = self.index_of(item)
        if index is None:
            return False
        del self[index]
        return True

    def remove_by_name(self, name: str) -> bool:
        """Remove the first item called ``name``; return whether one was found."""
        index = self.find_by_name(name)
        if index is None:
            return False
        del self[index]
        return True


@dataclass(eq=False)
class File:
    """A non-directory file-system item."""

    name: str = ""
    size: int = 0
    usage: int = 0
    mtime: Optional[datetime] = None
    parent: Optional["Dir"] = field(default=None, repr=False)
    mli: int = 0
    flag: str = " "

    @property
    def path(self) -> str:
        base = self.parent.path if self.parent is not None else ""
        return _join(base, self.name)

    @property
    def is_dir(self) -> bool:
        return False

    @property
    def type_name(self) -> str:
        return "Other" if self.flag == "@" else "File"

    @property
    def item_count(self) -> int:
        return 1

    def _already_counted(self, linked_items: HardLinkedItems) -> bool:
        if self.mli <= 0:
            return False
        counted = self.mli in linked_items
        if counted:
            self.flag = "H"
        linked_items.setdefault(self.mli, []).append(self)
        return counted

    def _item_stats(self, linked_items: HardLinkedItems) -> Tuple[int, int, int]:
        if self._already_counted(linked_items):
            return 1, 0, 0
        return 1, self.size, self.usage

    def encode_json(self, writer: Writer, top_level: bool = False) -> None:
        """Write the item as a JSON object."""
        parts = ['{"name":', _json_string(self.name)]
        if self.size > 0:
            parts.append(f',"asize":{self.size}')
        if self.usage > 0:
            parts.append(f',"dsize":{self.usage}')
        if self.mtime is not None:
            parts.append(f',"mtime":{_unix(self.mtime)}')
        if self.flag == "@":
            parts.append(',"notreg":true')
        if self.flag == "H":
            parts.append(f',"ino":{self.mli},"hlnkc":true')
        parts.append("}")
        writer.write("".join(parts))


@dataclass(eq=False)
class Dir(File):
    """A directory holding other items."""

    base_path: str = ""
    files: Files = field(default_factory=Files)
    item_count: int = 0

    @property
    def path(self) -> str:
        if self.base_path:
            return _join(self.base_path, self.name)
        base = self.parent.path if self.parent is not None else ""
        return _join(base, self.name)

    @property
    def is_dir(self) -> bool:
        return True

    @property
    def type_name(self) -> str:
        return "Directory"

    def _item_stats(self, linked_items: HardLinkedItems) -> Tuple[int, int, int]:
        self.update_stats(linked_items)
        return self.item_count, self.size, self.usage

    def update_stats(self, linked_items: Optional[HardLinkedItems] = None) -> None:
        """Recompute size, usage, item count, mtime and flag recursively."""
        if linked_items is None:
            linked_items = {}
        total_size = DIR_BASE_SIZE
        total_usage = DIR_BASE_SIZE
        count_sum = 0
        for entry in self.files:
            count, size, usage = entry._item_stats(linked_items)
            total_size += size
            total_usage += usage
            count_sum += count
            if entry.mtime is not None and (self.mtime is None or entry.mtime > self.mtime):
                self.mtime = entry.mtime
            if entry.flag in ("!", ".") and self.flag != "!":
                self.flag = "."
        self.item_count = count_sum + 1
        self.size = total_size
        self.usage = total_usage

    def encode_json(self, writer: Writer, top_level: bool = False) -> None:
        """Write the directory and its contents as a JSON array."""
        header = ['[{"name":', _json_string(self.path if top_level else self.name)]
        if self.mtime is not None:
            header.append(f',"mtime":{_unix(self.mtime)}')
        header.append("}")
        if self.files:
            header.append(",")
        header.append("\n")
        writer.write("".join(header))
        for index, item in enumerate(self.files):
            if index:
                writer.write(",\n")
            item.encode_json(writer, False)
        writer.write("]")


_SORT_KEYS: Dict[SortBy, Callable[[File], object]] = {
    SortBy.USAGE: attrgetter("usage"),
    SortBy.SIZE: attrgetter("size"),
    SortBy.ITEM_COUNT: attrgetter("item_count"),
    SortBy.NAME: attrgetter("name"),
    SortBy.MTIME: lambda item: item.mtime or _MIN_TIME,
}


def sort_files(files: List[File], by: SortBy = SortBy.USAGE, reverse: bool = False) -> None:
    """Sort in place, largest (or latest, or last by name) first unless reversed."""
    files.sort(key=_SORT_KEYS[by], reverse=not reverse)


def _ancestors(directory: Dir) -> Iterator[Dir]:
    current: Optional[Dir] = directory
    while current is not None:
        yield current
        current = current.parent


def _remove_all(path: str) -> None:
    try:
        info = os.lstat(path)
    except FileNotFoundError:
        return
    if stat.S_ISDIR(info.st_mode):
        shutil.rmtree(path)
    else:
        os.remove(path)


def remove_item_from_dir(directory: Dir, item: File) -> None:
    """Delete ``item`` from disk and from ``directory``, updating totals upwards."""
    _remove_all(item.path)
    directory.files.remove_item(item)
    for current in _ancestors(directory):
        current.item_count -= item.item_count
        current.size -= item.size
        current.usage -= item.usage


def empty_file_from_dir(directory: Dir, file: File) -> None:
    """Truncate ``file`` on disk and replace it in ``directory`` with an empty one."""
    os.truncate(file.path, 0)
    for current in _ancestors(directory):
        current.size -= file.size
        current.usage -= file.usage
    directory.files.remove_item(file)
    directory.files.append(File(name=file.name, flag=file.flag, size=0, parent=directory))