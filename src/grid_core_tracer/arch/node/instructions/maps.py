# src/grid_core_tracer/arch/node/instructions/maps.py
"""
ノード命令マップ。

オペコードごとに、オペランドの種類（デコード時の検証に使用）と
実行関数・ポート読み出し完了時の再開関数を対応付けます。
"""
from typing import Callable, Dict, NamedTuple, Optional, Tuple

from grid_core_tracer.transport.port import PortIntent
from grid_core_tracer.arch.node.instructions import alu, control, load
from grid_core_tracer.arch.node.instructions.base import Instruction, Opcode, OperandKind

# Execution Function Type
ExecFunc = Callable[..., Optional[PortIntent]]
# Resume Function Type (ポートから読み出した値を受け取って命令を完了させる)
ResumeFunc = Optional[Callable[..., Optional[PortIntent]]]

# Opcode Entry: (Operand Kinds, Execution Function, Resume Function)
class OpcodeEntry(NamedTuple):
    operand_kinds: Tuple[OperandKind, ...]
    execute: ExecFunc
    resume: ResumeFunc

_SRC = OperandKind.SOURCE
_DST = OperandKind.DESTINATION
_LBL = OperandKind.LABEL

OPCODE_MAP: Dict[Opcode, OpcodeEntry] = {
    Opcode.NOP: OpcodeEntry((), control.nop, None),
    Opcode.MOV: OpcodeEntry((_SRC, _DST), load.mov, load.mov_resume),
    Opcode.SWP: OpcodeEntry((), alu.swp, None),
    Opcode.SAV: OpcodeEntry((), alu.sav, None),
    Opcode.ADD: OpcodeEntry((_SRC,), alu.add, alu.add_resume),
    Opcode.SUB: OpcodeEntry((_SRC,), alu.sub, alu.sub_resume),
    Opcode.NEG: OpcodeEntry((), alu.neg, None),
    Opcode.JMP: OpcodeEntry((_LBL,), control.jmp, None),
    Opcode.JEZ: OpcodeEntry((_LBL,), control.jez, None),
    Opcode.JNZ: OpcodeEntry((_LBL,), control.jnz, None),
    Opcode.JGZ: OpcodeEntry((_LBL,), control.jgz, None),
    Opcode.JLZ: OpcodeEntry((_LBL,), control.jlz, None),
    Opcode.JRO: OpcodeEntry((_SRC,), control.jro, control.jro_resume),
    Opcode.HCF: OpcodeEntry((), control.hcf, None),
}

# @intent:responsibility 命令を実行し、ポート操作が必要であればその意図を返します。
def execute_instruction(node, instr: Instruction) -> Optional[PortIntent]:
    return OPCODE_MAP[instr.opcode].execute(node, instr)

# @intent:responsibility ポートからの読み出しが成立した命令を、読み出した値で再開します。
def resume_instruction(node, instr: Instruction, value: int) -> Optional[PortIntent]:
    resume = OPCODE_MAP[instr.opcode].resume
    if resume is None:
        raise RuntimeError(f"{instr.opcode.value} does not read from ports.")
    return resume(node, instr, value)
