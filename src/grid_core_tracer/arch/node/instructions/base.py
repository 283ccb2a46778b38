# src/grid_core_tracer/arch/node/instructions/base.py
"""
ノード命令セットの基本データ構造。

オペコード、オペランド、デコード済み命令およびプログラムを定義します。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from grid_core_tracer.common.types import LabelMap
from grid_core_tracer.transport.port import Direction

# @intent:responsibility 命令セットの全オペコードを定義します。
class Opcode(Enum):
    NOP = "NOP"
    MOV = "MOV"
    SWP = "SWP"
    SAV = "SAV"
    ADD = "ADD"
    SUB = "SUB"
    NEG = "NEG"
    JMP = "JMP"
    JEZ = "JEZ"
    JNZ = "JNZ"
    JGZ = "JGZ"
    JLZ = "JLZ"
    JRO = "JRO"
    HCF = "HCF"

# @intent:responsibility 命令から名前で参照できるレジスタ（疑似ポートを含む）を定義します。
class Register(Enum):
    ACC = "ACC"
    NIL = "NIL"
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    ANY = "ANY"
    LAST = "LAST"

    # @intent:responsibility 具体方向のポートであればDirectionを返します。
    @property
    def direction(self) -> Optional[Direction]:
        try:
            return Direction(self.value)
        except ValueError:
            return None

# @intent:responsibility ロード時に解決されたラベル参照。
@dataclass(frozen=True)
class LabelRef:
    name: str
    target: int

    def __str__(self) -> str:
        return self.name

Operand = Union[int, Register, LabelRef]

# @intent:responsibility オペランド位置ごとに受理する種類を定義します。
class OperandKind(Enum):
    SOURCE = "SOURCE"           # 即値 または レジスタ
    DESTINATION = "DESTINATION" # レジスタのみ
    LABEL = "LABEL"             # ラベル名

# @intent:responsibility デコード済みの単一命令を不変に保持します。
@dataclass(frozen=True) # 不変データ構造
class Instruction:
    """
    オペコードとオペランドからなる1命令。line_numberはソース上の行番号(1始まり、不明なら0)。
    """
    opcode: Opcode
    operands: Tuple[Operand, ...] = ()
    line_number: int = 0

    def __str__(self) -> str:
        if not self.operands:
            return self.opcode.value
        parts = []
        for operand in self.operands:
            if isinstance(operand, Register):
                parts.append(operand.value)
            else:
                parts.append(str(operand))
        return f"{self.opcode.value} {', '.join(parts)}"

# @intent:responsibility 1ノード分のデコード済みプログラムを保持します。
@dataclass(frozen=True)
class Program:
    instructions: Tuple[Instruction, ...] = ()
    labels: LabelMap = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    # @intent:responsibility 命令インデックス→ソース行番号の対応表。
    @property
    def line_numbers(self) -> Tuple[int, ...]:
        return tuple(instruction.line_number for instruction in self.instructions)

    # @intent:responsibility インデックス→ラベル名の逆引きマップを返します。
    def reverse_labels(self) -> Dict[int, str]:
        reverse: Dict[int, str] = {}
        for name, target in self.labels.items():
            reverse.setdefault(target, name)
        return reverse
