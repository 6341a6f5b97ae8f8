# gdu

A disk usage analysis library. It walks a directory tree with a pool of
worker threads, totals apparent size and disk usage per directory, counts
hard-linked files only once, lists mounted filesystems, and writes and reads
analysis reports in the JSON format used by ncdu.

It has no dependencies outside the standard library.

## Modules

- `gdu.analyzer` – `ParallelAnalyzer` scans a tree concurrently.
  `analyze_dir(path, ignore)` returns the root `Dir`; `get_progress()`
  returns a `CurrentProgress` snapshot (`current_item_name`, `item_count`,
  `total_size`), `wait_done(timeout)` waits for the scan to end and
  `reset_progress()` zeroes the counters. Directories that cannot be read get
  the flag `"!"`, empty ones `"e"`; symlinks and sockets get `"@"`.
- `gdu.items` – the tree model: `File`, `Dir` and the `Files` list
  (`index_of`, `find_by_name`, `remove_item`, `remove_by_name`, all by
  identity or name). `Dir.update_stats()` recomputes sizes, item counts,
  latest mtime and error flags recursively, counting each directory as 4096
  bytes and marking repeated hard links with `"H"`. `encode_json(writer,
  top_level)` writes the ncdu JSON form. `sort_files(files, by, reverse)`
  sorts by a `SortBy` member (`USAGE`, `SIZE`, `ITEM_COUNT`, `NAME`,
  `MTIME`), largest first unless `reverse` is true.
  `remove_item_from_dir` deletes an item from disk and
  `empty_file_from_dir` truncates a file, both keeping every parent's totals
  correct.
- `gdu.device` – `Device` (`name`, `mount_point`, `fstype`, `size`, `free`,
  `usage`) and the getters `LinuxDevicesInfoGetter` (reads `/proc/mounts`),
  `BSDDevicesInfoGetter` (runs `/sbin/mount`) and `OtherDevicesInfoGetter`
  (raises `OSError`); `default_getter()` picks one for the running platform.
  The parsers `read_mounts_file`/`process_mounts` and
  `read_mount_output`/`process_bsd_mounts` can be used on any text.
  `get_nested_mountpoints_paths(path, mounts)` returns mount points under a
  path, which is how a scan is kept from crossing filesystem boundaries.
  `sort_by_used_size` and `sort_by_name` sort device lists.
- `gdu.common` – `UI` holds the ignore rules: exact paths
  (`set_ignore_dir_paths`), regular expressions (`set_ignore_dir_patterns`,
  `set_ignore_from_file`) and hidden directories (`set_ignore_hidden`).
  `create_ignore_func()` combines them into one predicate.
  `create_ignore_pattern` and `format_number` are also available.
- `gdu.report` – `ExportUI` scans a path and writes the JSON report;
  `read_analysis(stream)` reads a report back into a `Dir` tree.

## Scanning a directory

```python
from gdu.analyzer import ParallelAnalyzer

analyzer = ParallelAnalyzer()
root = analyzer.analyze_dir("/var/log", lambda name, path: False)
root.update_stats({})
print(root.size, root.usage, root.item_count)
```

The ignore predicate receives each subdirectory's name and full path and
returns `True` to skip it:

```python
from gdu.common import UI

ui = UI()
ui.set_ignore_dir_paths(["/proc", "/dev", "/sys", "/run"])
ui.set_ignore_dir_patterns([r"/tmp/cache-\d+"])
ui.set_ignore_hidden(True)
ignore = ui.create_ignore_func()
```

An invalid pattern raises `re.error`.

## Exporting and reading reports

```python
import sys
from gdu.report import ExportUI, read_analysis

with open("report.json", "w", encoding="utf-8") as out:
    export = ExportUI(sys.stderr, out, use_colors=False, show_progress=True)
    export.analyze_path("/var/log")

with open("report.json", "rb") as stream:
    root = read_analysis(stream)
```

`ExportUI` sorts the top level by disk usage, writes a header with the
program name and a timestamp, and closes the export stream when it is a real
file other than standard output. With `show_progress` it draws a spinner with
item count and size on `output`. `format_size` renders sizes in binary units
(B, KiB … EiB). `list_devices` and `read_analysis` on an `ExportUI` raise
`RuntimeError`.

A malformed report passed to `read_analysis` raises `ValueError`, for example
when the top level is not an array, has fewer than four items, or a
directory entry is not an object with a string name.

## Formatting

```python
from gdu.common import format_number

format_number(1234567890)  # "1,234,567,890"
```

## What this package does not do

It is a library only: there is no command-line program, no interactive
terminal browser of the scanned tree and no plain-text listing of results.
Those have to be built on top of the modules above.