# grid_core_tracer/loader/assembler.py
"""
ノード用アセンブラ実装。

ソーステキストをトークン行に分割する字句解析(tokenize)と、
トークン行から命令列とラベル表を生成するデコード(NodeAssembler.decode)を提供します。
デコードは入力のみに依存する純粋関数です。
"""
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from grid_core_tracer.common.errors import DecodeError, DecodeErrorKind
from grid_core_tracer.common.types import LabelMap
from grid_core_tracer.transport.port import ACC_MAX, ACC_MIN
from grid_core_tracer.arch.node.instructions import (
    OPCODE_MAP, Instruction, LabelRef, Opcode, Operand, OperandKind, Program, Register,
)

MAX_PROGRAM_LINES = 15
COMMENT_CHAR = "#"

_LABEL_RE = re.compile(r'^\s*([A-Za-z0-9_\-.]+)\s*:(.*)$')
_INT_RE = re.compile(r'^[+-]?\d+$')

# @intent:data_structure 字句解析済みの1行。line_numberは1始まり。
@dataclass(frozen=True)
class SourceLine:
    line_number: int
    label: Optional[str] = None
    tokens: Tuple[str, ...] = ()

# @intent:responsibility ソーステキストの各行をラベルとトークンに分割します。
def tokenize(lines: Iterable[str]) -> List[SourceLine]:
    """
    コメント(#以降)を除去し、先頭の "LABEL:" を取り出し、空白とカンマで分割して大文字化します。
    空行もSourceLineとして残します（プログラム行数の計算に使用するため）。
    """
    result = []
    for line_number, line in enumerate(lines, 1):
        line = line.split(COMMENT_CHAR, 1)[0].strip()

        label = None
        match = _LABEL_RE.match(line)
        if match:
            label = match.group(1).upper()
            line = match.group(2).strip()

        tokens = tuple(token.upper() for token in re.split(r'[\s,]+', line) if token)
        result.append(SourceLine(line_number=line_number, label=label, tokens=tokens))
    return result

# @intent:responsibility トークン行を検証し、命令列とラベル表に変換します。
class NodeAssembler:
    def __init__(self, max_lines: Optional[int] = MAX_PROGRAM_LINES):
        self.max_lines = max_lines

    # @intent:responsibility ソーステキスト（行のリスト）からProgramを生成します。
    def assemble(self, lines: Sequence[str]) -> Program:
        return self.decode(tokenize(lines))

    def decode(self, source: Sequence[SourceLine]) -> Program:
        if self.max_lines is not None and len(source) > self.max_lines:
            raise DecodeError(
                DecodeErrorKind.PROGRAM_TOO_LONG,
                f"Program has {len(source)} lines, limit is {self.max_lines}",
                line_number=self.max_lines + 1,
            )

        labels = self._collect_labels(source)

        instructions = []
        for line in source:
            if not line.tokens:
                continue
            instructions.append(self._decode_line(line, labels))

        return Program(instructions=tuple(instructions), labels=labels)

    # First pass: ラベルを次の命令のインデックスへ対応付けます。
    # 後続の命令がないラベルは、プログラムの折り返しに合わせてインデックス0を指します。
    def _collect_labels(self, source: Sequence[SourceLine]) -> LabelMap:
        labels: Dict[str, int] = {}
        waiting: List[str] = []
        index = 0
        for line in source:
            if line.label is not None:
                if line.label in labels or line.label in waiting:
                    raise DecodeError(DecodeErrorKind.DUPLICATE_LABEL,
                                      f"Label '{line.label}' is defined more than once",
                                      line_number=line.line_number)
                waiting.append(line.label)
            if line.tokens:
                for name in waiting:
                    labels[name] = index
                waiting = []
                index += 1
        for name in waiting:
            labels[name] = 0
        return labels

    # Second pass: オペコードとオペランドを検証します。
    def _decode_line(self, line: SourceLine, labels: LabelMap) -> Instruction:
        mnemonic, *operand_tokens = line.tokens
        try:
            opcode = Opcode(mnemonic)
        except ValueError:
            raise DecodeError(DecodeErrorKind.UNKNOWN_OPCODE,
                              f"Unknown opcode '{mnemonic}'", line_number=line.line_number)

        kinds = OPCODE_MAP[opcode].operand_kinds
        if len(operand_tokens) != len(kinds):
            raise DecodeError(DecodeErrorKind.BAD_OPERAND_COUNT,
                              f"{opcode.value} takes {len(kinds)} operand(s), got {len(operand_tokens)}",
                              line_number=line.line_number)

        operands = tuple(
            self._parse_operand(token, kind, labels, line.line_number)
            for token, kind in zip(operand_tokens, kinds)
        )
        return Instruction(opcode=opcode, operands=operands, line_number=line.line_number)

    def _parse_operand(self, token: str, kind: OperandKind, labels: LabelMap, line_number: int) -> Operand:
        if kind == OperandKind.LABEL:
            if token not in labels:
                raise DecodeError(DecodeErrorKind.UNRESOLVED_LABEL,
                                  f"Undefined label '{token}'", line_number=line_number)
            return LabelRef(name=token, target=labels[token])

        if _INT_RE.match(token):
            if kind == OperandKind.DESTINATION:
                raise DecodeError(DecodeErrorKind.INVALID_OPERAND,
                                  f"Immediate value {token} cannot be a destination", line_number=line_number)
            value = int(token)
            if not ACC_MIN <= value <= ACC_MAX:
                raise DecodeError(DecodeErrorKind.OPERAND_OUT_OF_RANGE,
                                  f"Immediate value {value} outside {ACC_MIN}..{ACC_MAX}",
                                  line_number=line_number)
            return value

        try:
            return Register(token)
        except ValueError:
            raise DecodeError(DecodeErrorKind.INVALID_OPERAND,
                              f"Invalid operand '{token}'", line_number=line_number)
