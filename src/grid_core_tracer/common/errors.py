"""
共通の例外定義。

ロード時に検出されるプログラムの誤り(DecodeError)と、
グリッドが実行可能な状態にないことを示す例外(GridNotReadyError)を定義します。
実行時の状態(Deadlock, Timeout)は例外ではなく、実行結果として返されます。
"""
from enum import Enum
from typing import Optional

from grid_core_tracer.common.types import Coord

# @intent:responsibility デコードエラーの分類を定義します。
class DecodeErrorKind(Enum):
    UNKNOWN_OPCODE = "UNKNOWN_OPCODE"
    BAD_OPERAND_COUNT = "BAD_OPERAND_COUNT"
    UNRESOLVED_LABEL = "UNRESOLVED_LABEL"
    OPERAND_OUT_OF_RANGE = "OPERAND_OUT_OF_RANGE"
    INVALID_OPERAND = "INVALID_OPERAND"
    DUPLICATE_LABEL = "DUPLICATE_LABEL"
    PROGRAM_TOO_LONG = "PROGRAM_TOO_LONG"

# @intent:responsibility 不正なプログラムテキストをロード時に報告します。
class DecodeError(ValueError):
    """
    プログラムのデコードに失敗したことを示す例外。
    行番号(1始まり)と、グリッドへのロード時にはノード座標を保持します。
    """
    def __init__(self, kind: DecodeErrorKind, message: str,
                 line_number: Optional[int] = None, node: Optional[Coord] = None):
        self.kind = kind
        self.message = message
        self.line_number = line_number
        self.node = node
        super().__init__(self._format())

    def _format(self) -> str:
        location = ""
        if self.node is not None:
            location += f"node {self.node}"
        if self.line_number is not None:
            location += (", " if location else "") + f"line {self.line_number}"
        prefix = f"[{location}] " if location else ""
        return f"{prefix}{self.kind.value}: {self.message}"

    # @intent:responsibility ノード座標を付与した新しい例外を返します。
    def with_node(self, node: Coord) -> "DecodeError":
        return DecodeError(self.kind, self.message, self.line_number, node)

# @intent:responsibility デコードに失敗したノードが残っているグリッドの実行を拒否します。
class GridNotReadyError(RuntimeError):
    def __init__(self, failed_nodes):
        self.failed_nodes = sorted(failed_nodes)
        super().__init__(f"Grid cannot run until all nodes decode cleanly: {self.failed_nodes}")
