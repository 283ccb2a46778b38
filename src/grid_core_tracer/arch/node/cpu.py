# src/grid_core_tracer/arch/node/cpu.py
"""
ノード仮想機械の中心モジュール。
"""
import logging
from enum import Enum
from typing import Optional, Union

from grid_core_tracer.common.types import Coord
from grid_core_tracer.core.cpu import AbstractCore
from grid_core_tracer.transport.port import (
    CANONICAL_ORDER, Direction, IntentKind, PortIntent, clamp_value,
)
from grid_core_tracer.arch.node.state import NodeMode, NodeState
from grid_core_tracer.arch.node.instructions import (
    Instruction, Operand, Program, Register, execute_instruction, resume_instruction,
)

logger = logging.getLogger(__name__)

# @intent:responsibility ANYが一度も解決されていない状態でLASTを使った場合の振る舞いを定義します。
class LastPolicy(Enum):
    NIL = "NIL"      # 読み出しは0、書き込みは破棄し、命令はそのサイクルで完了する
    STALL = "STALL"  # 相手の存在しない意図で永久にブロックする（デッドロック判定の対象）

# @intent:responsibility グリッド上の1タイルの仮想機械を提供する。
class Node(AbstractCore):
    """
    命令メモリ、レジスタ(ACC, BAK, PC, LAST)、保留中のポート意図を持つノード。
    """
    def __init__(self, coord: Coord, program: Optional[Program] = None,
                 last_policy: LastPolicy = LastPolicy.NIL):
        self._program = program if program is not None else Program()
        self._initial_acc = 0
        self._initial_bak = 0
        self._last_policy = last_policy
        self._last_fallbacks = 0
        super().__init__(coord)

    # @intent:responsibility プログラムと初期レジスタ値を設定し、ノードをリセットします。
    def load(self, program: Program, acc: int = 0, bak: int = 0) -> None:
        self._program = program
        self._initial_acc = clamp_value(acc)
        self._initial_bak = clamp_value(bak)
        self.reset()

    @property
    def program(self) -> Program:
        return self._program

    @property
    def state(self) -> NodeState:
        return self._state

    @property
    def mode(self) -> NodeMode:
        return self._state.mode

    @property
    def last_policy(self) -> LastPolicy:
        return self._last_policy

    @property
    def last_fallbacks(self) -> int:
        return self._last_fallbacks

    def _create_initial_state(self) -> NodeState:
        mode = NodeMode.RUNNING if len(self._program) else NodeMode.IDLE
        return NodeState(acc=self._initial_acc, bak=self._initial_bak, mode=mode)

    def reset(self) -> None:
        super().reset()
        self._last_fallbacks = 0

    def is_active(self) -> bool:
        return self._state.mode in (NodeMode.RUNNING, NodeMode.BLOCKED)

    # @intent:responsibility 現在のPCが指す命令を返します。プログラムが空であればNone。
    def current_instruction(self) -> Optional[Instruction]:
        if not len(self._program):
            return None
        return self._program[self._state.pc]

    def _fetch(self) -> Instruction:
        return self._program[self._state.pc]

    def _execute(self, instruction: Instruction) -> Optional[PortIntent]:
        return execute_instruction(self, instruction)

    def _resume(self, instruction: Instruction, value: int) -> Optional[PortIntent]:
        return resume_instruction(self, instruction, value)

    def _retire_write(self, instruction: Instruction) -> None:
        self.advance()

    def _update_mode(self) -> None:
        if self._state.mode == NodeMode.HALTED:
            return
        self._state.mode = NodeMode.BLOCKED if self._pending is not None else NodeMode.RUNNING

    def _note_resolved(self, intent: PortIntent, direction: Direction) -> None:
        if intent.is_any:
            self._state.last = direction

    # --- Instruction Layerから利用される操作 ---

    # @intent:responsibility ACCに値を書き込みます。範囲外の値は飽和させます。
    def set_acc(self, value: int) -> None:
        self._state.acc = clamp_value(value)

    # @intent:responsibility PCを次の命令へ進めます。末尾の次は0へ戻ります。
    def advance(self) -> None:
        self.jump(self._state.pc + 1)

    # @intent:responsibility PCを指定インデックスへ移動します。負数を含め、プログラム長でラップします。
    def jump(self, index: int) -> None:
        self._state.pc = index % len(self._program)

    # @intent:responsibility ノードを恒久的に停止させます。
    def halt(self) -> None:
        self._state.mode = NodeMode.HALTED
        self._pending = None
        logger.info("Node %s halted at PC %d", self._coord, self._state.pc)

    # @intent:responsibility ソースオペランドの値を取得します。ポートの場合は読み出し意図を返します。
    def fetch_operand(self, operand: Operand) -> Union[int, PortIntent]:
        if isinstance(operand, int):
            return operand
        if operand == Register.ACC:
            return self._state.acc
        if operand == Register.NIL:
            return 0
        intent = self._port_intent(operand, IntentKind.READ)
        if intent is None:
            return 0
        return intent

    # @intent:responsibility デスティネーションへ値を格納します。ポートの場合は書き込み意図を返します。
    def store_operand(self, operand: Operand, value: int) -> Optional[PortIntent]:
        if operand == Register.ACC:
            self.set_acc(value)
            return None
        if operand == Register.NIL:
            return None
        return self._port_intent(operand, IntentKind.WRITE, clamp_value(value))

    # @intent:responsibility ポートレジスタ(UP/DOWN/LEFT/RIGHT/ANY/LAST)を意図へ変換します。
    # @intent:post-condition LASTが未確定でポリシーがNILの場合はNone（NIL扱い）を返します。
    def _port_intent(self, register: Register, kind: IntentKind,
                     value: Optional[int] = None) -> Optional[PortIntent]:
        if register == Register.ANY:
            return PortIntent(kind, CANONICAL_ORDER, value)
        if register == Register.LAST:
            if self._state.last is not None:
                return PortIntent(kind, (self._state.last,), value)
            self._last_fallbacks += 1
            logger.debug("Node %s used LAST before any ANY resolved (policy %s)",
                         self._coord, self._last_policy.value)
            if self._last_policy == LastPolicy.NIL:
                return None
            return PortIntent(kind, (), value)
        return PortIntent(kind, (register.direction,), value)
