"""Tests for sorting files and folders."""

from dataclasses import replace
from pathlib import Path
from typing import Callable

import pytest

from music_sorter.errors import InvalidRoot, MissingTag, NotSupported
from music_sorter.models import SortOptions, SortReport
from music_sorter.sorter import place_file, sort_file, sort_folder
from music_sorter.template import CompiledFormat


def files_under(root: Path) -> set[str]:
    return {path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file()}


class TestSortFile:
    """Test sorting a single file."""

    def test_moves_file(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that the file lands at its built path and parents are created."""
        source = write_track(library / "in.flac", artist="Artist", album="Album", track=3, title="Song")

        new_path = sort_file(library, source, options)

        assert new_path == library / "Artist" / "Album" / "03 - Song.flac"
        assert new_path.is_file()
        assert not source.exists()

    def test_dryrun_leaves_file(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that a dry run reports the destination without moving."""
        source = write_track(library / "in.flac", artist="Artist", album="Album", track=3, title="Song")

        new_path = sort_file(library, source, replace(options, dryrun=True))

        assert new_path == library / "Artist" / "Album" / "03 - Song.flac"
        assert source.is_file()
        assert not (library / "Artist").exists()

    def test_dryrun_raises_same_errors(
        self,
        library: Path,
        options: SortOptions,
        write_track: Callable[..., Path],
        write_junk: Callable[[Path], Path],
    ) -> None:
        """Test that a dry run validates like a real run."""
        dryrun = replace(options, dryrun=True)

        with pytest.raises(MissingTag):
            sort_file(library, write_track(library / "a.flac", artist="Artist", title="Song", track=1), dryrun)
        with pytest.raises(NotSupported):
            sort_file(library, write_junk(library / "b.txt"), dryrun)

    def test_already_in_place(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that sorting an organized file is a no-op rename."""
        placed = write_track(
            library / "Artist" / "Album" / "01 - Song.flac", artist="Artist", album="Album", track=1, title="Song"
        )

        assert sort_file(library, placed, options) == placed
        assert placed.is_file()

    def test_place_file_reports_created_dir(
        self,
        library: Path,
        options: SortOptions,
        write_track: Callable[..., Path],
    ) -> None:
        """Test that only a destination directory made by this call is reported."""
        first = write_track(library / "a.flac", artist="A", album="X", track=1, title="One")
        second = write_track(library / "b.flac", artist="A", album="X", track=2, title="Two")
        third = write_track(library / "c.flac", artist="B", album="Y", track=3, title="Three")

        assert place_file(library, first, options) == (library / "A" / "X" / "01 - One.flac", library / "A" / "X")
        assert place_file(library, second, options) == (library / "A" / "X" / "02 - Two.flac", None)
        assert place_file(library, third, replace(options, dryrun=True)) == (library / "B" / "Y" / "03 - Three.flac", None)


class TestSortFolder:
    """Test sorting directory trees."""

    def test_partial_failure(
        self,
        library: Path,
        options: SortOptions,
        write_track: Callable[..., Path],
        write_junk: Callable[[Path], Path],
    ) -> None:
        """Test that one bad file is counted without stopping the others."""
        write_track(library / "a.flac", artist="A", album="X", track=1, title="One")
        write_track(library / "b.flac", artist="B", album="Y", track=2, title="Two")
        write_junk(library / "cover.txt")

        report = sort_folder(library, library, options)

        assert (report.total, report.success, report.failed) == (3, 2, 1)
        assert sorted(report.new_paths) == [library / "A" / "X" / "01 - One.flac", library / "B" / "Y" / "02 - Two.flac"]
        assert files_under(library) == {"A/X/01 - One.flac", "B/Y/02 - Two.flac", "cover.txt"}

    def test_created_dirs(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that directories that already existed are not reported as created."""
        write_track(library / "B" / "Y" / "01 - Old.flac", artist="B", album="Y", track=1, title="Old")
        write_track(library / "a.flac", artist="A", album="X", track=1, title="One")
        write_track(library / "b.flac", artist="B", album="Y", track=2, title="Two")

        report = sort_folder(library, library, options)

        assert (report.total, report.success) == (2, 2)
        assert report.new_dirs == [library / "A" / "X"]

    def test_not_recursive(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that subdirectories are left alone unless recursive."""
        write_track(library / "a.flac", artist="A", album="X", track=1, title="One")
        write_track(library / "sub" / "b.flac", artist="B", album="Y", track=2, title="Two")

        report = sort_folder(library, library, options)

        assert (report.total, report.success) == (1, 1)
        assert (library / "sub" / "b.flac").is_file()

    def test_recursive(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that nested files are sorted relative to the root."""
        write_track(library / "one" / "two" / "a.flac", artist="A", album="X", track=1, title="One")
        write_track(library / "one" / "b.flac", artist="B", album="Y", track=2, title="Two")

        report = sort_folder(library, library, replace(options, recursive=True))

        assert (report.total, report.success) == (2, 2)
        assert files_under(library) == {"A/X/01 - One.flac", "B/Y/02 - Two.flac"}
        # Emptied directories stay without remove_empty.
        assert (library / "one" / "two").is_dir()

    def test_remove_empty(
        self,
        library: Path,
        options: SortOptions,
        write_track: Callable[..., Path],
        write_junk: Callable[[Path], Path],
    ) -> None:
        """Test that emptied directories go and non-empty ones stay."""
        write_track(library / "incoming" / "nested" / "a.flac", artist="A", album="X", track=1, title="One")
        write_track(library / "keep" / "b.flac", artist="B", album="Y", track=2, title="Two")
        write_junk(library / "keep" / "notes.txt")
        (library / "empty").mkdir()

        report = sort_folder(library, library, replace(options, recursive=True, remove_empty=True))

        assert (report.total, report.success) == (3, 2)
        assert not (library / "incoming").exists()
        assert not (library / "empty").exists()
        assert (library / "keep" / "notes.txt").is_file()
        assert library.is_dir()

    def test_remove_empty_start_dir(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that a start directory below the root is removed once emptied."""
        start = library / "drop"
        write_track(start / "a.flac", artist="A", album="X", track=1, title="One")

        sort_folder(library, start, replace(options, recursive=True, remove_empty=True))

        assert not start.exists()
        assert (library / "A" / "X" / "01 - One.flac").is_file()

    def test_remove_empty_keeps_root(self, library: Path, options: SortOptions) -> None:
        """Test that the library root itself is never removed."""
        report = sort_folder(library, library, replace(options, recursive=True, remove_empty=True))

        assert report == SortReport()
        assert library.is_dir()

    def test_dryrun(
        self,
        library: Path,
        options: SortOptions,
        write_track: Callable[..., Path],
        write_junk: Callable[[Path], Path],
    ) -> None:
        """Test that a dry run counts everything and touches nothing."""
        write_track(library / "sub" / "a.flac", artist="A", album="X", track=1, title="One")
        write_junk(library / "b.txt")
        (library / "empty").mkdir()
        before = files_under(library)

        report = sort_folder(library, library, replace(options, dryrun=True, recursive=True, remove_empty=True))

        assert (report.total, report.success) == (2, 1)
        assert files_under(library) == before
        assert (library / "empty").is_dir()

    def test_destination_inside_tree_not_sorted_twice(
        self,
        library: Path,
        options: SortOptions,
        write_track: Callable[..., Path],
    ) -> None:
        """Test that files moved into a directory still to be visited are not counted again."""
        write_track(library / "A" / "X" / "01 - One.flac", artist="A", album="X", track=1, title="One")
        write_track(library / "A" / "two.flac", artist="A", album="X", track=2, title="Two")

        report = sort_folder(library, library, replace(options, recursive=True))

        assert (report.total, report.success) == (2, 2)
        assert files_under(library) == {"A/X/01 - One.flac", "A/X/02 - Two.flac"}

    def test_idempotent(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that sorting an organized tree again changes nothing."""
        write_track(library / "a.flac", artist="A", album="X", track=1, title="One")
        write_track(library / "b.flac", artist="B", album="Y", track=2, title="Two")
        recursive = replace(options, recursive=True)
        sort_folder(library, library, recursive)
        first = files_under(library)

        report = sort_folder(library, library, recursive)

        assert (report.total, report.success) == (2, 2)
        assert files_under(library) == first

    def test_template_change_moves_again(
        self,
        library: Path,
        options: SortOptions,
        write_track: Callable[..., Path],
    ) -> None:
        """Test that a new format re-sorts an organized tree."""
        write_track(library / "a.flac", artist="A", album="X", track=1, title="One")
        sort_folder(library, library, options)

        flat = replace(options, format=CompiledFormat.parse("{artist} - {title}.{ext}"), recursive=True, remove_empty=True)
        report = sort_folder(library, library, flat)

        assert report.success == 1
        assert files_under(library) == {"A - One.flac"}
        assert not (library / "A").exists()

    @pytest.mark.parametrize("jobs", [1, 4])
    def test_many_files(self, library: Path, options: SortOptions, write_track: Callable[..., Path], jobs: int) -> None:
        """Test aggregate counts do not depend on the worker count."""
        for number in range(1, 21):
            write_track(library / f"{number}.flac", artist="A", album="X", track=number, title=f"T{number}")

        report = sort_folder(library, library, replace(options, jobs=jobs))

        assert (report.total, report.success) == (20, 20)
        assert len(files_under(library / "A" / "X")) == 20

    def test_invalid_root(self, library: Path, options: SortOptions, write_track: Callable[..., Path]) -> None:
        """Test that a file or missing path as root is fatal."""
        track = write_track(library / "a.flac", artist="A", album="X", track=1, title="One")

        with pytest.raises(InvalidRoot):
            sort_folder(track, track, options)
        with pytest.raises(InvalidRoot):
            sort_folder(library, library / "missing", options)


class TestSortReport:
    """Test report aggregation."""

    def test_merge(self) -> None:
        """Test that merging sums counters and joins paths."""
        left = SortReport(total=2, success=1, new_paths=[Path("a")], new_dirs=[Path("d")])
        right = SortReport(total=3, success=3, new_paths=[Path("b")])

        merged = left.merge(right)

        assert (merged.total, merged.success, merged.failed) == (5, 4, 1)
        assert merged.new_paths == [Path("a"), Path("b")]
        assert merged.new_dirs == [Path("d")]
        assert right.merge(left).total == merged.total

    def test_summary(self) -> None:
        """Test the batch completion line."""
        assert SortReport(total=3, success=2).summary() == "Done: 2 successful out of 3 (1 failed)"
