# src/grid_core_tracer/arch/node/instructions/alu.py
"""
算術・レジスタ操作命令 (ADD, SUB, NEG, SAV, SWP) の実行ロジック。
ACCへの書き込みは常にNode.set_accを経由し、±999で飽和します。
"""
from typing import Optional

from grid_core_tracer.transport.port import PortIntent
from grid_core_tracer.arch.node.instructions.base import Instruction

# @intent:responsibility ADD: ソースの値をACCに加算します。ポートからの読み出しの場合は意図を返します。
def add(node, instr: Instruction) -> Optional[PortIntent]:
    value = node.fetch_operand(instr.operands[0])
    if isinstance(value, PortIntent):
        return value
    return add_resume(node, instr, value)

def add_resume(node, instr: Instruction, value: int) -> Optional[PortIntent]:
    node.set_acc(node.state.acc + value)
    node.advance()
    return None

# @intent:responsibility SUB: ソースの値をACCから減算します。
def sub(node, instr: Instruction) -> Optional[PortIntent]:
    value = node.fetch_operand(instr.operands[0])
    if isinstance(value, PortIntent):
        return value
    return sub_resume(node, instr, value)

def sub_resume(node, instr: Instruction, value: int) -> Optional[PortIntent]:
    node.set_acc(node.state.acc - value)
    node.advance()
    return None

# @intent:responsibility NEG: ACCの符号を反転します。0は0のまま。
def neg(node, instr: Instruction) -> Optional[PortIntent]:
    node.set_acc(-node.state.acc)
    node.advance()
    return None

# @intent:responsibility SAV: ACCをBAKへ退避します。
def sav(node, instr: Instruction) -> Optional[PortIntent]:
    node.state.bak = node.state.acc
    node.advance()
    return None

# @intent:responsibility SWP: ACCとBAKを交換します。
def swp(node, instr: Instruction) -> Optional[PortIntent]:
    state = node.state
    state.acc, state.bak = state.bak, state.acc
    node.advance()
    return None
