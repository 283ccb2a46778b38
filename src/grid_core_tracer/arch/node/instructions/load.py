# src/grid_core_tracer/arch/node/instructions/load.py
"""
転送命令 (MOV) の実行ロジック。
"""
from typing import Optional

from grid_core_tracer.transport.port import PortIntent
from grid_core_tracer.arch.node.instructions.base import Instruction

# @intent:responsibility MOV: ソースの値をデスティネーションへ転送します。
# @intent:note ポート間のMOVは、読み出しが成立したサイクルの次のサイクルから書き込み意図を提示します。
def mov(node, instr: Instruction) -> Optional[PortIntent]:
    value = node.fetch_operand(instr.operands[0])
    if isinstance(value, PortIntent):
        return value
    return mov_resume(node, instr, value)

def mov_resume(node, instr: Instruction, value: int) -> Optional[PortIntent]:
    intent = node.store_operand(instr.operands[1], value)
    if intent is None:
        node.advance()
    return intent
