# src/grid_core_tracer/arch/node/instructions/control.py
"""
制御命令 (NOP, JMP, JEZ, JNZ, JGZ, JLZ, JRO, HCF) の実行ロジック。
"""
from typing import Optional

from grid_core_tracer.transport.port import PortIntent
from grid_core_tracer.arch.node.instructions.base import Instruction

def nop(node, instr: Instruction) -> Optional[PortIntent]:
    node.advance()
    return None

# @intent:responsibility 条件成立時はラベル先へ、不成立時は次の命令へ進みます。
def _branch(node, instr: Instruction, taken: bool) -> None:
    if taken:
        node.jump(instr.operands[0].target)
    else:
        node.advance()

def jmp(node, instr: Instruction) -> Optional[PortIntent]:
    _branch(node, instr, True)
    return None

def jez(node, instr: Instruction) -> Optional[PortIntent]:
    _branch(node, instr, node.state.acc == 0)
    return None

def jnz(node, instr: Instruction) -> Optional[PortIntent]:
    _branch(node, instr, node.state.acc != 0)
    return None

def jgz(node, instr: Instruction) -> Optional[PortIntent]:
    _branch(node, instr, node.state.acc > 0)
    return None

def jlz(node, instr: Instruction) -> Optional[PortIntent]:
    _branch(node, instr, node.state.acc < 0)
    return None

# @intent:responsibility JRO: ソースの値だけPCを相対移動します。プログラム長でラップします。
def jro(node, instr: Instruction) -> Optional[PortIntent]:
    value = node.fetch_operand(instr.operands[0])
    if isinstance(value, PortIntent):
        return value
    return jro_resume(node, instr, value)

def jro_resume(node, instr: Instruction, value: int) -> Optional[PortIntent]:
    node.jump(node.state.pc + value)
    return None

# @intent:responsibility HCF: ノードを恒久的に停止させます。
def hcf(node, instr: Instruction) -> Optional[PortIntent]:
    node.halt()
    return None
