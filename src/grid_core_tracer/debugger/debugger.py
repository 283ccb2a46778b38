# grid_core_tracer/debugger/debugger.py
"""
デバッガモジュール。

グリッドの実行を制御し、ユーザーが指定した条件（ブレークポイント）で
実行を中断させる責務を負います。グリッドへの状態変更は step のみを経由します。
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from grid_core_tracer.common.types import Coord
from grid_core_tracer.core.grid import Grid
from grid_core_tracer.core.snapshot import GridSnapshot, GridStatus, NodeSnapshot
from grid_core_tracer.transport.port import Direction

logger = logging.getLogger(__name__)

# @intent:responsibility ブレークポイントの条件タイプを定義します。
class BreakpointConditionType(Enum):
    PC_MATCH = "PC_MATCH"           # ノードのPCが特定のインデックスに一致
    ACC_VALUE = "ACC_VALUE"         # ノードのACCが特定の値になった
    ACC_CHANGE = "ACC_CHANGE"       # ノードのACCの値が変化した
    MODE_CHANGE = "MODE_CHANGE"     # ノードの実行モードが変化した
    PORT_TRANSFER = "PORT_TRANSFER" # ノードが関与する転送が成立した
    OUTPUT_WRITE = "OUTPUT_WRITE"   # 出力スタブへ値が書き込まれた

# @intent:responsibility ブレークポイントをトリガーする条件を定義します。
@dataclass(frozen=True)
class BreakpointCondition:
    """
    ブレークポイントがヒットするための条件を定義するデータクラス。
    nodeがNoneの場合は全ノードが対象です。
    """
    condition_type: BreakpointConditionType
    node: Optional[Coord] = None
    value: Optional[int] = None           # PC_MATCH, ACC_VALUEで使用
    direction: Optional[Direction] = None # PORT_TRANSFER, OUTPUT_WRITEで使用（省略時は全方向）
    enabled: bool = True

# @intent:responsibility デバッガ実行の終了理由を定義します。
class DebugStopReason(Enum):
    BREAKPOINT = "BREAKPOINT"
    HALTED = "HALTED"
    DEADLOCK = "DEADLOCK"
    TIMEOUT = "TIMEOUT"
    STOPPED = "STOPPED"

@dataclass(frozen=True)
class DebugRunResult:
    reason: DebugStopReason
    snapshot: GridSnapshot
    breakpoint: Optional[BreakpointCondition] = None

# @intent:responsibility グリッドの実行制御とブレークポイント管理を行います。
class Debugger:
    """
    グリッドの実行を制御し、ブレークポイントの管理と実行履歴の保持を行うクラス。
    """
    def __init__(self, grid: Grid):
        self._grid = grid
        self._breakpoints: List[BreakpointCondition] = []
        self._running: bool = False
        self._previous: GridSnapshot = grid.snapshot()
        # @intent:responsibility 実行履歴を保持し、サイクルごとのトレースを提供します。
        self._history: List[GridSnapshot] = []

    def add_breakpoint(self, condition: BreakpointCondition) -> None:
        if condition not in self._breakpoints:
            self._breakpoints.append(condition)

    def remove_breakpoint(self, condition: BreakpointCondition) -> None:
        if condition in self._breakpoints:
            self._breakpoints.remove(condition)

    def get_breakpoints(self) -> List[BreakpointCondition]:
        return list(self._breakpoints)

    def get_history(self) -> List[GridSnapshot]:
        return list(self._history)

    def get_last_snapshot(self) -> Optional[GridSnapshot]:
        return self._history[-1] if self._history else None

    # @intent:responsibility グリッドを1サイクル進め、その結果を履歴に追加します。
    def step_cycle(self) -> GridSnapshot:
        self._previous = self._grid.snapshot()
        snapshot = self._grid.step()
        self._history.append(snapshot)
        return snapshot

    # @intent:responsibility グリッドをリセットし、履歴を破棄します。
    def reset(self) -> None:
        self._grid.reset()
        self._history = []
        self._previous = self._grid.snapshot()

    # @intent:responsibility 直前のサイクルの結果に対して、ヒットしたブレークポイントを返します。
    def check_breakpoints(self, snapshot: GridSnapshot) -> Optional[BreakpointCondition]:
        for bp in self._breakpoints:
            if bp.enabled and self._matches(bp, snapshot):
                return bp
        return None

    def _matches(self, bp: BreakpointCondition, snapshot: GridSnapshot) -> bool:
        kind = bp.condition_type

        if kind == BreakpointConditionType.PORT_TRANSFER:
            for transfer in snapshot.transfers:
                if bp.node is not None and bp.node not in (transfer.writer, transfer.reader):
                    continue
                if bp.direction is not None and bp.direction != transfer.direction:
                    continue
                return True
            return False

        if kind == BreakpointConditionType.OUTPUT_WRITE:
            for transfer in snapshot.transfers:
                if transfer.reader is not None:
                    continue
                if bp.node is not None and bp.node != transfer.writer:
                    continue
                if bp.direction is not None and bp.direction != transfer.direction:
                    continue
                return True
            return False

        for node in self._scoped_nodes(bp, snapshot):
            before = self._previous.node(node.coord)
            if kind == BreakpointConditionType.PC_MATCH and node.pc == bp.value:
                return True
            if kind == BreakpointConditionType.ACC_VALUE and node.acc == bp.value:
                return True
            if kind == BreakpointConditionType.ACC_CHANGE and node.acc != before.acc:
                return True
            if kind == BreakpointConditionType.MODE_CHANGE and node.mode != before.mode:
                return True
        return False

    def _scoped_nodes(self, bp: BreakpointCondition, snapshot: GridSnapshot) -> List[NodeSnapshot]:
        if bp.node is None:
            return list(snapshot.nodes)
        return [snapshot.node(tuple(bp.node))]

    # @intent:responsibility ブレークポイント、停止、デッドロック、サイクル上限のいずれかまで実行を継続します。
    def run(self, max_cycles: int) -> DebugRunResult:
        self._running = True
        snapshot = self._grid.snapshot()
        executed = 0

        while self._running and executed < max_cycles:
            snapshot = self.step_cycle()
            executed += 1

            hit = self.check_breakpoints(snapshot)
            if hit is not None:
                self._running = False
                logger.info("Breakpoint %s hit at cycle %d", hit.condition_type.value, snapshot.cycle_count)
                return DebugRunResult(DebugStopReason.BREAKPOINT, snapshot, hit)

            if snapshot.status == GridStatus.HALTED:
                self._running = False
                return DebugRunResult(DebugStopReason.HALTED, snapshot)
            if snapshot.status == GridStatus.DEADLOCK:
                self._running = False
                return DebugRunResult(DebugStopReason.DEADLOCK, snapshot)

        if not self._running:
            return DebugRunResult(DebugStopReason.STOPPED, snapshot)
        self._running = False
        return DebugRunResult(DebugStopReason.TIMEOUT, snapshot)

    def stop(self) -> None:
        self._running = False
