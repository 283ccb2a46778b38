# src/grid_core_tracer/arch/node/state.py
"""
ノードの状態定義。
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from grid_core_tracer.core.state import CoreState
from grid_core_tracer.transport.port import Direction

# @intent:responsibility ノードの実行モードを定義します。
class NodeMode(Enum):
    IDLE = "IDLE"         # プログラムなし。スケジューリング対象外
    RUNNING = "RUNNING"
    BLOCKED = "BLOCKED"   # ポート意図の相手を待機中
    HALTED = "HALTED"     # HCFによる終端状態

# @intent:responsibility ノードのレジスタ状態（ACC, BAK, LAST）と実行モードを保持する。
@dataclass
class NodeState(CoreState):
    """
    ノードのレジスタ状態。BAKは命令から直接参照できず、SAV/SWPのみが操作します。
    lastは直近のANYが解決された具体方向です。
    """
    acc: int = 0
    bak: int = 0
    last: Optional[Direction] = None
    mode: NodeMode = NodeMode.IDLE
