"""
共通の型定義を提供するモジュール。
プロジェクト全体で使用される汎用的な型エイリアスなどを定義します。
"""
from typing import Dict, Tuple

# @intent:data_structure グリッド上のノード位置 (row, col) を表す型エイリアス。
# グリッド外の境界スタブも同じ形式の座標（例: (-1, 0)）で表現します。
Coord = Tuple[int, int]

# @intent:data_structure ラベル名と命令インデックスをマッピングする辞書の型エイリアス。
# Assembler, Node, Debuggerなど複数のレイヤーで共通して使用されます。
LabelMap = Dict[str, int]
