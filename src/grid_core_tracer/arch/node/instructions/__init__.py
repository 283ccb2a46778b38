"""
ノード命令セット実装パッケージ。
"""
from .base import Instruction, LabelRef, Opcode, Operand, OperandKind, Program, Register
from .maps import OPCODE_MAP, execute_instruction, resume_instruction
