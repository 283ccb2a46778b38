# src/grid_core_tracer/arch/node/disassembler.py
"""
ノードプログラムの逆アセンブラ。
"""
from typing import List, Tuple

from grid_core_tracer.arch.node.instructions import Program

# @intent:responsibility プログラムを (インデックス, ラベル, 命令テキスト) のリストに変換する。
def disassemble(program: Program) -> List[Tuple[int, str, str]]:
    """
    ラベルは同じインデックスを指すもののうち最初に定義されたものを表示します。
    """
    reverse = program.reverse_labels()
    return [
        (index, reverse.get(index, ""), str(instruction))
        for index, instruction in enumerate(program.instructions)
    ]
