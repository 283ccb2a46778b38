# grid_core_tracer/core/snapshot.py
"""
実行状態の不変スナップショット

このモジュールは、グリッドの全ノードと全ポートの状態を記録した不変のデータ構造を定義します。
UI（レンダラ）への情報提供と、テストおよびデバッグ時の状態記録に用いる責務を負います。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from grid_core_tracer.common.types import Coord
from grid_core_tracer.arch.node.state import NodeMode
from grid_core_tracer.transport.port import Direction, PortIntent, PortTransfer

# @intent:responsibility グリッド全体の実行状況を定義します。
class GridStatus(Enum):
    RUNNING = "RUNNING"
    DEADLOCK = "DEADLOCK"
    HALTED = "HALTED"

# @intent:responsibility 1ノードの状態を記録します。
@dataclass(frozen=True) # 不変データ構造
class NodeSnapshot:
    coord: Coord
    acc: int
    bak: int
    pc: int
    mode: NodeMode
    last: Optional[Direction] = None
    intent: Optional[PortIntent] = None
    instruction: Optional[str] = None # 現在のPCが指す命令のテキスト
    last_fallbacks: int = 0

# @intent:responsibility 1ポートの状態を記録します。
@dataclass(frozen=True) # 不変データ構造
class PortSnapshot:
    source: Coord
    direction: Direction
    value: Optional[int] = None # Noneは空
    kind: str = "internal"      # "internal", "input", "output"
    label: str = ""

    @property
    def is_empty(self) -> bool:
        return self.value is None

# @intent:responsibility 実行に関するメタデータを記録します。
@dataclass(frozen=True) # 不変データ構造
class Metadata:
    cycle_count: int
    status: GridStatus = GridStatus.RUNNING

# @intent:responsibility ある一時点におけるグリッドの完全な状態を不変に記録します。
@dataclass(frozen=True) # 不変データ構造
class GridSnapshot:
    """
    ある一時点における、全ノードと全ポートの状態を記録した不変のデータ構造。
    transfersは直前のサイクルで成立した転送です。
    """
    nodes: Tuple[NodeSnapshot, ...]
    ports: Tuple[PortSnapshot, ...]
    metadata: Metadata
    transfers: Tuple[PortTransfer, ...] = field(default_factory=tuple)

    @property
    def cycle_count(self) -> int:
        return self.metadata.cycle_count

    @property
    def status(self) -> GridStatus:
        return self.metadata.status

    def node(self, coord: Coord) -> NodeSnapshot:
        for node in self.nodes:
            if node.coord == coord:
                return node
        raise KeyError(f"No node at {coord}")

    def port(self, source: Coord, direction: Direction) -> PortSnapshot:
        for port in self.ports:
            if port.source == source and port.direction == direction:
                return port
        raise KeyError(f"No port {source}->{direction.value}")
