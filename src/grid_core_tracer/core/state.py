# grid_core_tracer/core/state.py
"""
Core Layer (実行状態)

このモジュールは、プログラムを実行する処理単位の基本的な状態を保持するデータ構造を定義します。
"""
from dataclasses import dataclass

# @intent:responsibility 処理単位のプログラムカウンタを保持します。アーキテクチャ固有のレジスタはこれを拡張します。
@dataclass
class CoreState:
    """
    処理単位の状態を保持するデータクラス。
    これは抽象的な基底状態であり、ノードの実装で拡張されます（例: arch/node/state.py）。
    """
    pc: int = 0  # Program Counter (命令インデックス)
