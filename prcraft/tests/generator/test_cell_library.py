"""Tests for primitive cell file emission."""

import logging

import pytest
from jinja2 import Environment, FileSystemLoader

from prcraft.generator.cell_library import (
    CELL_DIR,
    CLOCK_CELL_LIBRARY,
    RESET_CELL_LIBRARY,
    CellLibraryEmitter,
    has_cell,
)

TEMPLATE_DIR = CELL_DIR.parent / "templates"


@pytest.fixture
def env():
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


class RecordingFormatter:
    def __init__(self):
        self.calls = []

    def format_verilog_file(self, path):
        self.calls.append(path)
        return True


class TestCellLibrary:
    def test_every_cell_has_a_resource(self):
        for library in (CLOCK_CELL_LIBRARY, RESET_CELL_LIBRARY):
            for name in library.cells:
                assert has_cell(library.cell_text(name), name)

    def test_file_names(self):
        assert CLOCK_CELL_LIBRARY.file_name == "clock_cell.v"
        assert RESET_CELL_LIBRARY.file_name == "reset_cell.v"

    def test_unknown_cell(self):
        with pytest.raises(KeyError, match="Unknown reset cell"):
            RESET_CELL_LIBRARY.cell_text("qsoc_clk_div")

    @pytest.mark.parametrize(
        "text, found",
        [
            ("module qsoc_clk_div #(", True),
            ("module  qsoc_clk_div(", True),
            ("module qsoc_clk_div_auto (", False),
            ("// qsoc_clk_div", False),
        ],
    )
    def test_has_cell_matches_whole_names(self, text, found):
        assert has_cell(text, "qsoc_clk_div") is found


class TestCellLibraryEmitter:
    def test_creates_missing_file(self, env, tmp_path):
        assert CellLibraryEmitter(RESET_CELL_LIBRARY, env).ensure(tmp_path) is True
        text = (tmp_path / "reset_cell.v").read_text()
        assert "`timescale 1ns / 1ps" in text
        assert text.index("module qsoc_rst_sync") < text.index("module qsoc_rst_pipe")
        assert text.index("module qsoc_rst_pipe") < text.index("module qsoc_rst_count")

    def test_appends_only_missing_cells(self, env, tmp_path):
        path = tmp_path / "reset_cell.v"
        existing = "// user edits\n" + RESET_CELL_LIBRARY.cell_text("qsoc_rst_sync") + "\n"
        path.write_text(existing)

        assert CellLibraryEmitter(RESET_CELL_LIBRARY, env).ensure(tmp_path) is True
        text = path.read_text()
        assert text.startswith(existing)
        assert text.count("module qsoc_rst_sync") == 1
        assert "module qsoc_rst_pipe" in text
        assert "module qsoc_rst_count" in text

    def test_complete_file_untouched(self, env, tmp_path, caplog):
        emitter = CellLibraryEmitter(CLOCK_CELL_LIBRARY, env)
        emitter.ensure(tmp_path)
        path = tmp_path / "clock_cell.v"
        path.write_text(path.read_text() + "// keep me\n")
        before = path.read_text()

        with caplog.at_level(logging.INFO):
            assert emitter.ensure(tmp_path) is True
        assert path.read_text() == before
        assert "already contains all clock cells" in caplog.text

    def test_force_overwrite(self, env, tmp_path):
        path = tmp_path / "reset_cell.v"
        path.write_text("// stale\n")
        assert CellLibraryEmitter(RESET_CELL_LIBRARY, env, force_overwrite=True).ensure(tmp_path)
        assert "// stale" not in path.read_text()

    def test_write_failure_is_reported(self, env, tmp_path, caplog):
        blocker = tmp_path / "out"
        blocker.write_text("not a directory")
        with caplog.at_level(logging.WARNING):
            assert CellLibraryEmitter(RESET_CELL_LIBRARY, env).ensure(blocker) is False
        assert "Cannot write primitive cell file" in caplog.text

    def test_formatter_runs_after_write(self, env, tmp_path):
        formatter = RecordingFormatter()
        CellLibraryEmitter(RESET_CELL_LIBRARY, env, formatter=formatter).ensure(tmp_path)
        assert formatter.calls == [tmp_path / "reset_cell.v"]
