# src/grid_core_tracer/ui/text_view.py
"""
グリッドのテキスト表示。

GridSnapshotを読み取り専用で受け取り、各ノードを罫線ボックスとして描画します。
ボックスの間にはポートの値を矢印付きで表示します。
"""
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from grid_core_tracer.common.types import Coord
from grid_core_tracer.arch.node.state import NodeMode
from grid_core_tracer.core.snapshot import GridSnapshot, NodeSnapshot, PortSnapshot
from grid_core_tracer.transport.port import Direction

NODE_WIDTH = 22
GAP_WIDTH = 6

Listing = Sequence[Tuple[int, str, str]]
PortLookup = Dict[Tuple[Coord, Direction], PortSnapshot]

def _port_text(port: Optional[PortSnapshot], arrow: str, arrow_first: bool) -> str:
    if port is None:
        return ""
    value = "" if port.value is None else str(port.value)
    return f"{arrow}{value}" if arrow_first else f"{value}{arrow}"

def _border() -> str:
    return "+" + "-" * NODE_WIDTH + "+"

def _row(text: str) -> str:
    return "|" + text[:NODE_WIDTH].ljust(NODE_WIDTH) + "|"

# @intent:responsibility 1ノード分のボックスを行のリストとして生成します。
def render_node(node: NodeSnapshot, listing: Listing, program_rows: int) -> List[str]:
    last = node.last.value if node.last is not None else "N/A"
    lines = [
        _border(),
        _row(f" ACC:{node.acc:>4}  BAK:{node.bak:>4}"),
        _row(f" {node.mode.value:<8} LAST:{last}"),
        _border(),
    ]
    for i in range(program_rows):
        if i < len(listing):
            index, label, text = listing[i]
            marker = "> " if index == node.pc and node.mode != NodeMode.IDLE else "  "
            prefix = f"{label}: " if label else ""
            lines.append(_row(marker + prefix + text))
        else:
            lines.append(_row(""))
    lines.append(_border())
    return lines

# @intent:responsibility 行rと行r+1の間（境界を含む）の縦方向ポートを1行で描画します。
def _vertical_line(ports: PortLookup, row: int, cols: int) -> str:
    line = " " * GAP_WIDTH
    for c in range(cols):
        down = _port_text(ports.get(((row, c), Direction.DOWN)), "v", True)
        up = _port_text(ports.get(((row + 1, c), Direction.UP)), "^", True)
        cell = f"  {down:<8}{up:<8}"
        line += cell.ljust(NODE_WIDTH + 2) + " " * GAP_WIDTH
    return line.rstrip()

# @intent:responsibility 列cと列c+1の間（境界を含む）の横方向ポートのi行目を描画します。
def _gap(ports: PortLookup, row: int, col: int, line_index: int) -> str:
    if line_index == 1:
        text = _port_text(ports.get(((row, col), Direction.RIGHT)), ">", False)
        return text.rjust(GAP_WIDTH - 1) + " "
    if line_index == 2:
        text = _port_text(ports.get(((row, col + 1), Direction.LEFT)), "<", True)
        return " " + text.ljust(GAP_WIDTH - 1)
    return " " * GAP_WIDTH

# @intent:responsibility グリッド全体をテキストとして描画します。
def render_grid(snapshot: GridSnapshot, listings: Mapping[Coord, Listing]) -> str:
    """
    listingsはノード座標ごとの (インデックス, ラベル, 命令テキスト) のリストです（Grid.listingの戻り値）。
    """
    ports: PortLookup = {(p.source, p.direction): p for p in snapshot.ports}
    rows = max(node.coord[0] for node in snapshot.nodes) + 1
    cols = max(node.coord[1] for node in snapshot.nodes) + 1

    lines = [f"CYCLE {snapshot.cycle_count}  STATUS {snapshot.status.value}", ""]
    lines.append(_vertical_line(ports, -1, cols))
    for r in range(rows):
        program_rows = max([len(listings.get((r, c), ())) for c in range(cols)] + [1])
        boxes = [render_node(snapshot.node((r, c)), listings.get((r, c), ()), program_rows)
                 for c in range(cols)]
        for i in range(len(boxes[0])):
            line = _gap(ports, r, -1, i)
            for c in range(cols):
                line += boxes[c][i] + _gap(ports, r, c, i)
            lines.append(line.rstrip())
        lines.append(_vertical_line(ports, r, cols))
    return "\n".join(lines)
