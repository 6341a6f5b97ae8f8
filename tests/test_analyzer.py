import os

import pytest

from gdu.analyzer import CurrentProgress, ParallelAnalyzer
from gdu.items import SortBy, sort_files


@pytest.fixture
def sample_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    os.makedirs("test_dir/nested/subnested")
    with open("test_dir/nested/subnested/file", "w") as handle:
        handle.write("hello")
    with open("test_dir/nested/file2", "w") as handle:
        handle.write("go")
    return "test_dir"


def _never(name, path):
    return False


def test_analyze_dir(sample_dir):
    analyzer = ParallelAnalyzer()
    directory = analyzer.analyze_dir(sample_dir, _never)

    progress = analyzer.get_progress()
    assert progress.item_count == 4
    assert progress.total_size == 7
    analyzer.reset_progress()
    assert analyzer.get_progress() == CurrentProgress()

    assert analyzer.wait_done(1.0) is True
    directory.update_stats({})

    assert directory.name == "test_dir"
    assert directory.size == 7 + 4096 * 3
    assert directory.item_count == 5
    assert directory.is_dir is True
    assert directory.base_path == "."

    nested = directory.files[0]
    assert nested.name == "nested"
    assert nested.files[1].name == "subnested"

    assert nested.files[0].name == "file2"
    assert nested.files[0].size == 2

    deep_file = nested.files[1].files[0]
    assert deep_file.name == "file"
    assert deep_file.size == 5

    assert deep_file.parent.parent.parent.name == "test_dir"


def test_ignore_dir(sample_dir):
    directory = ParallelAnalyzer().analyze_dir(sample_dir, lambda name, path: True)
    assert directory.name == "test_dir"
    assert directory.item_count == 1
    assert len(directory.files) == 0


def test_ignore_receives_name_and_path(sample_dir):
    seen = []

    def record(name, path):
        seen.append((name, path))
        return name == "subnested"

    directory = ParallelAnalyzer().analyze_dir(sample_dir, record)
    directory.update_stats({})

    assert ("nested", os.path.join("test_dir", "nested")) in seen
    assert ("subnested", os.path.join("test_dir", "nested", "subnested")) in seen
    assert [f.name for f in directory.files[0].files] == ["file2"]
    assert directory.item_count == 3


def test_flags(sample_dir):
    os.mkdir("test_dir/empty")
    os.symlink("test_dir/nested/file2", "test_dir/nested/file3")

    analyzer = ParallelAnalyzer()
    directory = analyzer.analyze_dir(sample_dir, _never)
    assert analyzer.wait_done(1.0) is True
    directory.update_stats({})

    sort_files(directory.files, SortBy.USAGE)

    assert directory.size == 28 + 4096 * 4
    assert directory.item_count == 7

    nested = directory.files[0]
    assert nested.name == "nested"
    assert nested.files[1].name == "file3"
    assert nested.files[1].size == 21
    assert nested.files[1].flag == "@"

    assert directory.files[1].flag == "e"


def test_hardlink(sample_dir):
    os.link("test_dir/nested/file2", "test_dir/nested/file3")

    analyzer = ParallelAnalyzer()
    directory = analyzer.analyze_dir(sample_dir, _never)
    assert analyzer.wait_done(1.0) is True
    directory.update_stats({})

    assert directory.size == 7 + 4096 * 3
    assert directory.item_count == 6

    file3 = directory.files[0].files[1]
    assert file3.name == "file3"
    assert file3.size == 2
    assert file3.flag == "H"


def test_missing_root_is_flagged(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    directory = ParallelAnalyzer().analyze_dir("missing", _never)
    assert directory.name == "missing"
    assert directory.flag == "!"
    assert directory.item_count == 1
    assert len(directory.files) == 0


def test_empty_root_is_flagged(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    os.mkdir("empty")
    directory = ParallelAnalyzer().analyze_dir("empty", _never)
    assert directory.flag == "e"
    assert directory.path == "empty"


def test_trailing_separator_in_path(sample_dir):
    directory = ParallelAnalyzer().analyze_dir(sample_dir + os.sep, _never)
    assert directory.name == "test_dir"
    assert directory.base_path == "test_dir"
    assert [f.name for f in directory.files] == ["nested"]