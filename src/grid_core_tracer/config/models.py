from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from grid_core_tracer.transport.port import Direction

@dataclass
class NodeConfig:
    at: Tuple[int, int]
    source: Optional[str] = None  # インラインのソーステキスト
    file: Optional[str] = None    # 単一ノードのソースファイル
    acc: int = 0
    bak: int = 0

@dataclass
class InputConfig:
    at: Tuple[int, int]
    direction: Direction
    values: List[int] = field(default_factory=list)
    label: str = ""

@dataclass
class OutputConfig:
    at: Tuple[int, int]
    direction: Direction
    label: str = ""

@dataclass
class GridConfig:
    rows: int
    cols: int
    cycle_limit: int = 10000
    last_policy: str = "NIL"  # "NIL", "STALL"
    max_program_lines: Optional[int] = 15
    programs: Optional[str] = None  # "@N" セクション形式のファイル
    nodes: List[NodeConfig] = field(default_factory=list)
    inputs: List[InputConfig] = field(default_factory=list)
    outputs: List[OutputConfig] = field(default_factory=list)
    base_dir: str = "."  # 相対パス解決の基準
