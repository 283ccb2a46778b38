# grid_core_tracer/transport/port.py
"""
Transport Layer (ポート)

このモジュールは、ノード間およびノードと境界スタブ間の単一スロット通信路を抽象化します。
ポートは (送信元座標, 方向) で識別され、ノード同士が直接参照し合うことはありません。
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple

from grid_core_tracer.common.types import Coord

ACC_MIN = -999
ACC_MAX = 999

# @intent:utility_function 値をレジスタの表現範囲に飽和させます。
def clamp_value(value: int) -> int:
    return max(ACC_MIN, min(ACC_MAX, value))

# @intent:responsibility ポートの4方向を定義します。
class Direction(Enum):
    UP = "UP"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    DOWN = "DOWN"

    @property
    def opposite(self) -> "Direction":
        return _OPPOSITE[self]

    @property
    def delta(self) -> Tuple[int, int]:
        return _DELTA[self]

_OPPOSITE = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}

_DELTA = {
    Direction.UP: (-1, 0),
    Direction.DOWN: (1, 0),
    Direction.LEFT: (0, -1),
    Direction.RIGHT: (0, 1),
}

# ANYの解決および競合時の優先順位
CANONICAL_ORDER: Tuple[Direction, ...] = (Direction.UP, Direction.LEFT, Direction.RIGHT, Direction.DOWN)

# @intent:utility_function 指定方向に隣接する座標を返します。
def neighbor(coord: Coord, direction: Direction) -> Coord:
    dr, dc = direction.delta
    return (coord[0] + dr, coord[1] + dc)

# @intent:responsibility ポート操作の意図の種類を定義します。
class IntentKind(Enum):
    READ = "READ"
    WRITE = "WRITE"

# @intent:responsibility ノードが宣言したポートへの読み書きの意図を記録します。
@dataclass(frozen=True) # 不変データ構造
class PortIntent:
    """
    ノードが解決を待っているポート操作。
    directionsは候補方向（具体方向なら1つ、ANYなら正規順序の4つ、解決不能なLASTなら空）。
    """
    kind: IntentKind
    directions: Tuple[Direction, ...]
    value: Optional[int] = None # WRITEの場合のみ

    @property
    def is_any(self) -> bool:
        return len(self.directions) > 1

    def __str__(self) -> str:
        target = "ANY" if self.is_any else ("-" if not self.directions else self.directions[0].value)
        if self.kind == IntentKind.WRITE:
            return f"WRITE {self.value} -> {target}"
        return f"READ <- {target}"

# @intent:responsibility 1サイクル内で成立した単一の転送を記録します。
@dataclass(frozen=True) # 不変データ構造
class PortTransfer:
    """
    ハンドシェイクによって成立したポート上の値の移動。
    writer/readerがNoneの場合、その側は境界スタブ（外部）です。
    """
    source: Coord
    direction: Direction
    value: int
    writer: Optional[Coord]
    reader: Optional[Coord]

    @property
    def key(self) -> Tuple[Coord, Direction]:
        return (self.source, self.direction)

# @intent:responsibility ノード間の単一スロット通信路を提供します。
class Port:
    """
    (source, direction) で識別される方向付きの単一スロット通信路。
    書き込み側ノードが値を置き、ハンドシェイクが成立したときに読み出し側が取り出します。
    """
    # @intent:pre-condition sourceは送信元ノード（または境界の外側）の座標である必要があります。
    def __init__(self, source: Coord, direction: Direction, label: str = ""):
        self._source = source
        self._direction = direction
        self._value: Optional[int] = None
        self.label = label

    @property
    def source(self) -> Coord:
        return self._source

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def target(self) -> Coord:
        return neighbor(self._source, self._direction)

    @property
    def key(self) -> Tuple[Coord, Direction]:
        return (self._source, self._direction)

    @property
    def value(self) -> Optional[int]:
        return self._value

    def is_empty(self) -> bool:
        return self.value is None

    # @intent:responsibility 境界の外部側が常に読み出し可能かどうかを返します。
    def accepts_external_write(self) -> bool:
        return False

    # @intent:responsibility 書き込み側ノードが値をスロットに置きます。
    # @intent:pre-condition スロットは空か、同じ値を保持している必要があります（ブロック中の再提示）。
    def offer(self, value: int) -> None:
        if self._value is not None and self._value != value:
            raise RuntimeError(
                f"Port {self._source}->{self._direction.value} already holds {self._value}, cannot offer {value}."
            )
        self._value = value

    # @intent:responsibility スロットの値を取り出し、空にします。
    def take(self) -> int:
        if self._value is None:
            raise RuntimeError(f"Port {self._source}->{self._direction.value} is empty.")
        value = self._value
        self._value = None
        return value

    def clear(self) -> None:
        self._value = None

    # @intent:responsibility 初期状態に戻します。
    def reset(self) -> None:
        self.clear()

# @intent:responsibility 外部ハーネスから値を供給する境界スタブ。
class InputPort(Port):
    """
    グリッド外から隣接ノードへ値を供給する境界ポート。
    有限または無限のイテラブルを受け取り、次に読み出される値を常にスロットに保持します。
    値が尽きると、そのポートからの読み出しは永久にブロックされます。
    """
    def __init__(self, source: Coord, direction: Direction, values: Iterable[int] = (), label: str = ""):
        super().__init__(source, direction, label)
        self._stream: Iterator[int] = iter(values)
        # ストリームから取り出した値の記録。resetではここから再生し、続きはストリームから読みます
        self._drawn: List[int] = []
        self._position = 0
        self._fed: List[int] = []
        self.consumed: List[int] = []
        self._refill()

    def _next_from_stream(self) -> int:
        if self._position < len(self._drawn):
            value = self._drawn[self._position]
        else:
            value = next(self._stream)
            self._drawn.append(value)
        self._position += 1
        return value

    # @intent:responsibility スロットが空であれば次の値をストリームから補充します。
    def _refill(self) -> None:
        if self._value is not None:
            return
        if self._fed:
            self._value = clamp_value(self._fed.pop(0))
            return
        try:
            self._value = clamp_value(self._next_from_stream())
        except StopIteration:
            self._value = None

    # @intent:responsibility ハーネスが追加の入力値を供給します。
    def feed(self, values: Iterable[int]) -> None:
        self._fed.extend(values)
        self._refill()

    def is_exhausted(self) -> bool:
        return self._value is None

    def offer(self, value: int) -> None:
        raise RuntimeError("Input ports are driven externally and cannot be written by a node.")

    def take(self) -> int:
        value = super().take()
        self.consumed.append(value)
        self._refill()
        return value

    # @intent:responsibility ストリームを先頭から読み直します。
    # @intent:post-condition 無限イテラブルやジェネレータでも、reset前と同じ順序で値を提示します。
    # feedで追加された値は破棄されます。
    def reset(self) -> None:
        super().reset()
        self._position = 0
        self._fed = []
        self.consumed = []
        self._refill()

# @intent:responsibility 隣接ノードが書き込んだ値を収集する境界スタブ。
class OutputPort(Port):
    """
    ノードからグリッド外へ値を送り出す境界ポート。外部側は常に読み出し可能です。
    """
    def __init__(self, source: Coord, direction: Direction, label: str = ""):
        super().__init__(source, direction, label)
        self.values: List[int] = []

    def accepts_external_write(self) -> bool:
        return True

    def take(self) -> int:
        value = super().take()
        self.values.append(value)
        return value

    def reset(self) -> None:
        super().reset()
        self.values = []
