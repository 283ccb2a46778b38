# grid_core_tracer/loader/loader.py
"""
プログラムローダーモジュール。
単一ノードのソースファイルと、複数ノードをまとめた "@N" セクション形式のファイルのロードをサポートします。
"""
import re
from typing import Dict, List

from grid_core_tracer.common.types import Coord

_SECTION_RE = re.compile(r'^\s*@(\d+)\s*$')

class ProgramLoader:
    """
    ノードプログラムのソーステキストをファイルから読み出すローダー。
    デコードは行わず、行のリストを返します（デコードはGrid/NodeAssemblerの責務）。
    """
    def load_source(self, file_path: str) -> List[str]:
        with open(file_path, 'r', encoding="utf-8") as f:
            return f.read().splitlines()

    # @intent:responsibility "@N" 見出しで区切られた複数ノード分のソースを読み出します。
    # @intent:pre-condition Nは0始まりの行優先インデックスです。
    def load_sections(self, file_path: str) -> Dict[int, List[str]]:
        with open(file_path, 'r', encoding="utf-8") as f:
            return self.parse_sections(f.read().splitlines())

    def parse_sections(self, lines: List[str]) -> Dict[int, List[str]]:
        sections: Dict[int, List[str]] = {}
        current = None
        for line_num, line in enumerate(lines, 1):
            match = _SECTION_RE.match(line)
            if match:
                current = int(match.group(1))
                if current in sections:
                    raise ValueError(f"Duplicate section @{current} on line {line_num}")
                sections[current] = []
                continue
            if current is None:
                if line.strip():
                    raise ValueError(f"Content before the first @N section on line {line_num}: {line}")
                continue
            sections[current].append(line)

        for body in sections.values():
            while body and not body[-1].strip():
                body.pop()
        return sections

    # @intent:responsibility 行優先インデックスをグリッド座標へ変換します。
    def section_coord(self, index: int, rows: int, cols: int) -> Coord:
        if not 0 <= index < rows * cols:
            raise ValueError(f"Section @{index} is outside a {rows}x{cols} grid")
        return divmod(index, cols)
