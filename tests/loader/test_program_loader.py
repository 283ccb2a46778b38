# tests/loader/test_program_loader.py
"""
grid_core_tracer.loader.loaderモジュールの単体テスト。
"""
import pytest

from grid_core_tracer.loader.loader import ProgramLoader

# @intent:test_suite プログラムファイルのロード機能の検証。

class TestProgramLoader:
    @pytest.fixture
    def loader(self):
        return ProgramLoader()

    def test_load_source(self, loader, tmp_path):
        path = tmp_path / "node.tis"
        path.write_text("MOV UP, ACC\nADD 1\n")
        assert loader.load_source(str(path)) == ["MOV UP, ACC", "ADD 1"]

    def test_load_sections(self, loader, tmp_path):
        path = tmp_path / "save.tis"
        path.write_text("@0\nMOV UP, DOWN\n\n@1\n\n@3\nADD 1\nSWP\n")
        sections = loader.load_sections(str(path))
        assert sections == {0: ["MOV UP, DOWN"], 1: [], 3: ["ADD 1", "SWP"]}

    def test_duplicate_section_raises(self, loader):
        with pytest.raises(ValueError):
            loader.parse_sections(["@0", "NOP", "@0"])

    def test_content_before_first_section_raises(self, loader):
        with pytest.raises(ValueError):
            loader.parse_sections(["NOP", "@0"])

    def test_section_coord(self, loader):
        assert loader.section_coord(0, 3, 4) == (0, 0)
        assert loader.section_coord(5, 3, 4) == (1, 1)
        with pytest.raises(ValueError):
            loader.section_coord(12, 3, 4)
