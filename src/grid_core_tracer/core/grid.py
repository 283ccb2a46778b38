# grid_core_tracer/core/grid.py
"""
Core Layer (グリッドスケジューラ)

このモジュールは、全ノードと全ポートを所有し、グリッド全体を1論理サイクルずつ進める責務を負います。
各サイクルは「提案 → ハンドシェイク解決 → デッドロック判定 → サイクル数更新」の順に進み、
外部からの状態変更は step / run_until / reset のみを経由します。
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from grid_core_tracer.common.errors import DecodeError, GridNotReadyError
from grid_core_tracer.common.types import Coord
from grid_core_tracer.arch.node import LastPolicy, Node
from grid_core_tracer.arch.node.disassembler import disassemble
from grid_core_tracer.arch.node.instructions import Program
from grid_core_tracer.core.snapshot import (
    GridSnapshot, GridStatus, Metadata, NodeSnapshot, PortSnapshot,
)
from grid_core_tracer.loader.assembler import NodeAssembler, SourceLine
from grid_core_tracer.transport.handshake import HandshakeMatch, resolve_handshakes
from grid_core_tracer.transport.port import (
    CANONICAL_ORDER, Direction, InputPort, IntentKind, OutputPort, Port, PortIntent,
    PortTransfer, neighbor,
)

logger = logging.getLogger(__name__)

PortKey = Tuple[Coord, Direction]
ProgramSource = Union[str, Program, Sequence[str], Sequence[SourceLine]]

# @intent:responsibility run_untilの終了理由を定義します。
class RunOutcome(Enum):
    HALTED = "HALTED"               # 全ノードが停止（またはプログラムなし）
    DEADLOCK = "DEADLOCK"           # 全稼働ノードがブロックし、転送が1件もない
    TIMEOUT = "TIMEOUT"             # サイクル上限に到達
    CONDITION_MET = "CONDITION_MET" # 呼び出し元の停止条件が成立

# @intent:responsibility run_untilの結果を記録します。
@dataclass(frozen=True)
class RunResult:
    outcome: RunOutcome
    cycles: int        # この呼び出しで実行したサイクル数
    cycle_count: int   # グリッドの累計サイクル数
    snapshot: GridSnapshot

def _port_sort_key(key: PortKey):
    coord, direction = key
    return (coord, CANONICAL_ORDER.index(direction))

# @intent:responsibility ノードとポートのアリーナを所有し、ロックステップ実行を駆動します。
class Grid:
    """
    rows × cols のノードと、隣接ノード間の方向付きポート、および接続された境界スタブを保持するグリッド。
    ノードは座標で、ポートは (送信元座標, 方向) で参照され、ノード同士は互いを直接参照しません。
    """
    # @intent:pre-condition rows, colsは正の整数である必要があります。
    def __init__(self, rows: int, cols: int, last_policy: LastPolicy = LastPolicy.NIL,
                 assembler: Optional[NodeAssembler] = None):
        if not isinstance(rows, int) or not isinstance(cols, int) or rows <= 0 or cols <= 0:
            raise ValueError("Grid dimensions must be positive integers.")
        self._rows = rows
        self._cols = cols
        self._last_policy = last_policy
        self._assembler = assembler if assembler is not None else NodeAssembler()

        self._order: List[Coord] = [(r, c) for r in range(rows) for c in range(cols)]
        self._nodes: Dict[Coord, Node] = {
            coord: Node(coord, last_policy=last_policy) for coord in self._order
        }
        self._ports: Dict[PortKey, Port] = {}
        for coord in self._order:
            for direction in CANONICAL_ORDER:
                if neighbor(coord, direction) in self._nodes:
                    self._ports[(coord, direction)] = Port(coord, direction)

        self._load_errors: Dict[Coord, DecodeError] = {}
        self._cycle_count = 0
        self._status = GridStatus.RUNNING
        self._last_transfers: Tuple[PortTransfer, ...] = ()

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def status(self) -> GridStatus:
        return self._status

    @property
    def last_policy(self) -> LastPolicy:
        return self._last_policy

    @property
    def load_errors(self) -> Dict[Coord, DecodeError]:
        return dict(self._load_errors)

    def coords(self) -> List[Coord]:
        return list(self._order)

    def get_node(self, coord: Coord) -> Node:
        coord = tuple(coord)
        if coord not in self._nodes:
            raise ValueError(f"No node at {coord} in a {self._rows}x{self._cols} grid.")
        return self._nodes[coord]

    @property
    def ports(self) -> Dict[PortKey, Port]:
        return dict(self._ports)

    @property
    def inputs(self) -> List[InputPort]:
        return [port for port in self._ports.values() if isinstance(port, InputPort)]

    @property
    def outputs(self) -> List[OutputPort]:
        return [port for port in self._ports.values() if isinstance(port, OutputPort)]

    # @intent:responsibility ラベルまたは座標・方向で出力スタブが収集した値を返します。
    def output_values(self, label: str) -> List[int]:
        for port in self.outputs:
            if port.label == label:
                return list(port.values)
        raise KeyError(f"No output port labelled '{label}'")

    # --- Setup (実行開始前のみ) ---

    # @intent:responsibility トポロジ・プログラムの変更が許される状態かを確認します。
    def _ensure_setup(self) -> None:
        if self._cycle_count > 0:
            raise RuntimeError("Grid topology is fixed once execution has started; call reset() first.")

    # @intent:responsibility ノードにプログラムをロードします。
    # @intent:post-condition デコードに失敗した場合、そのノードは空のままエラーが記録され、DecodeErrorが送出されます。
    def load_program(self, coord: Coord, source: ProgramSource, acc: int = 0, bak: int = 0) -> Program:
        self._ensure_setup()
        node = self.get_node(coord)
        coord = node.coord
        try:
            program = self._decode(source)
        except DecodeError as e:
            error = e.with_node(coord)
            self._load_errors[coord] = error
            node.load(Program())
            logger.warning("Failed to load program: %s", error)
            raise error
        self._load_errors.pop(coord, None)
        node.load(program, acc=acc, bak=bak)
        return program

    def _decode(self, source: ProgramSource) -> Program:
        if isinstance(source, Program):
            return source
        if isinstance(source, str):
            return self._assembler.assemble(source.splitlines())
        lines = list(source)
        if lines and isinstance(lines[0], SourceLine):
            return self._assembler.decode(lines)
        return self._assembler.assemble(lines)

    # @intent:responsibility グリッド境界に入力スタブを接続します。
    # @intent:pre-condition directionはグリッドの外側を向いている必要があります。
    def attach_input(self, coord: Coord, direction: Direction, values=(), label: str = "") -> InputPort:
        self._ensure_setup()
        node = self.get_node(coord)
        outside = self._outside(node.coord, direction)
        port = InputPort(outside, direction.opposite, values, label=label)
        return self._register_boundary(port)

    # @intent:responsibility グリッド境界に出力スタブを接続します。
    def attach_output(self, coord: Coord, direction: Direction, label: str = "") -> OutputPort:
        self._ensure_setup()
        node = self.get_node(coord)
        self._outside(node.coord, direction)
        port = OutputPort(node.coord, direction, label=label)
        return self._register_boundary(port)

    def _outside(self, coord: Coord, direction: Direction) -> Coord:
        outside = neighbor(coord, direction)
        if outside in self._nodes:
            raise ValueError(f"{coord} {direction.value} is an interior edge, not a grid boundary.")
        return outside

    def _register_boundary(self, port: Port) -> Port:
        if port.key in self._ports:
            raise ValueError(f"A port is already attached at {port.source}->{port.direction.value}.")
        self._ports[port.key] = port
        return port

    # --- Control ---

    # @intent:responsibility グリッド全体をちょうど1サイクル進め、その結果のスナップショットを返します。
    def step(self) -> GridSnapshot:
        """
        1. 提案: 稼働中の全ノードが1命令ステップを進めるか、ポート意図を提示（ブロック中は再提示）します。
        2. 解決: 集まった意図の集合から成立する組を決定し、値を原子的に転送します。
        3. 判定: 転送が1件もなく全稼働ノードがブロックしていればデッドロックです。
        4. サイクル数を1増やします。
        """
        if self._load_errors:
            raise GridNotReadyError(self._load_errors)

        # 1. 提案
        intents: Dict[Coord, PortIntent] = {}
        for coord in self._order:
            intent = self._nodes[coord].propose()
            if intent is not None:
                intents[coord] = intent
        self._sync_write_ports()

        # 2. 解決
        matches = resolve_handshakes(intents, self._ports)
        transfers = tuple(self._apply(match, intents) for match in matches)
        self._sync_write_ports()

        # 3. 判定
        self._status = self._evaluate_status(transfers)

        # 4. サイクル更新
        self._cycle_count += 1
        self._last_transfers = transfers

        for transfer in transfers:
            logger.debug("cycle %d: %s -> %s value %d via %s %s", self._cycle_count,
                         transfer.writer, transfer.reader, transfer.value,
                         transfer.source, transfer.direction.value)
        if self._status != GridStatus.RUNNING:
            logger.info("Grid reached %s at cycle %d", self._status.value, self._cycle_count)

        return self.snapshot()

    # @intent:responsibility 保留中の具体方向の書き込み値をポートのスロットに置きます。
    def _sync_write_ports(self) -> None:
        for coord in self._order:
            intent = self._nodes[coord].pending
            if intent is None or intent.kind != IntentKind.WRITE or len(intent.directions) != 1:
                continue
            port = self._ports.get((coord, intent.directions[0]))
            if port is not None:
                port.offer(intent.value)

    # @intent:responsibility 成立した組の値を転送し、双方のノードの命令を完了させます。
    def _apply(self, match: HandshakeMatch, intents: Mapping[Coord, PortIntent]) -> PortTransfer:
        port = match.port
        if match.writer is not None:
            port.offer(intents[match.writer].value)
        value = port.take()
        if match.writer is not None:
            self._nodes[match.writer].complete_write(match.write_direction)
        if match.reader is not None:
            self._nodes[match.reader].complete_read(value, match.read_direction)
        return PortTransfer(source=port.source, direction=port.direction, value=value,
                            writer=match.writer, reader=match.reader)

    def _evaluate_status(self, transfers: Sequence[PortTransfer]) -> GridStatus:
        active = [node for node in self._nodes.values() if node.is_active()]
        if not active:
            return GridStatus.HALTED
        if not transfers and all(node.is_blocked() for node in active):
            return GridStatus.DEADLOCK
        return GridStatus.RUNNING

    # @intent:responsibility 停止・デッドロック・サイクル上限・呼び出し元の条件のいずれかまで実行します。
    # @intent:post-condition DeadlockとTimeoutは例外ではなく結果として返されます。Timeout後も再開可能です。
    def run_until(self, max_cycles: int, until: Optional[Callable[["Grid"], bool]] = None) -> RunResult:
        if max_cycles < 1:
            raise ValueError("max_cycles must be a positive integer.")
        if self._load_errors:
            raise GridNotReadyError(self._load_errors)

        if not any(node.is_active() for node in self._nodes.values()):
            self._status = GridStatus.HALTED
            return RunResult(RunOutcome.HALTED, 0, self._cycle_count, self.snapshot())

        executed = 0
        while executed < max_cycles:
            snapshot = self.step()
            executed += 1
            if self._status == GridStatus.DEADLOCK:
                return RunResult(RunOutcome.DEADLOCK, executed, self._cycle_count, snapshot)
            if self._status == GridStatus.HALTED:
                return RunResult(RunOutcome.HALTED, executed, self._cycle_count, snapshot)
            if until is not None and until(self):
                return RunResult(RunOutcome.CONDITION_MET, executed, self._cycle_count, snapshot)

        logger.info("Cycle budget of %d exhausted at cycle %d", max_cycles, self._cycle_count)
        return RunResult(RunOutcome.TIMEOUT, executed, self._cycle_count, self.snapshot())

    # @intent:responsibility 全ノード・全ポートを初期状態に戻し、サイクル数を0にします。
    def reset(self) -> None:
        for node in self._nodes.values():
            node.reset()
        for port in self._ports.values():
            port.reset()
        self._cycle_count = 0
        self._status = GridStatus.RUNNING
        self._last_transfers = ()

    # --- Inspection ---

    # @intent:responsibility 状態を変更せずに現在のスナップショットを生成します。
    def snapshot(self) -> GridSnapshot:
        nodes = []
        for coord in self._order:
            node = self._nodes[coord]
            state = node.state
            instruction = node.current_instruction()
            nodes.append(NodeSnapshot(
                coord=coord,
                acc=state.acc,
                bak=state.bak,
                pc=state.pc,
                mode=state.mode,
                last=state.last,
                intent=node.pending,
                instruction=str(instruction) if instruction is not None else None,
                last_fallbacks=node.last_fallbacks,
            ))

        ports = []
        for key in sorted(self._ports, key=_port_sort_key):
            port = self._ports[key]
            if isinstance(port, InputPort):
                kind = "input"
            elif isinstance(port, OutputPort):
                kind = "output"
            else:
                kind = "internal"
            ports.append(PortSnapshot(source=port.source, direction=port.direction,
                                      value=port.value, kind=kind, label=port.label))

        return GridSnapshot(
            nodes=tuple(nodes),
            ports=tuple(ports),
            metadata=Metadata(cycle_count=self._cycle_count, status=self._status),
            transfers=self._last_transfers,
        )

    # @intent:responsibility ノードのプログラムを (インデックス, ラベル, 命令テキスト) のリストで返します。
    def listing(self, coord: Coord) -> List[Tuple[int, str, str]]:
        return disassemble(self.get_node(coord).program)
