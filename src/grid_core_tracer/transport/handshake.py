# grid_core_tracer/transport/handshake.py
"""
Transport Layer (ハンドシェイク解決)

1サイクル分のポート意図の集合から、成立する読み書きの組を決定します。
結果は意図の集合のみから計算され、ノードが提案した順序には依存しません。
"""
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Set, Tuple

from grid_core_tracer.common.types import Coord
from grid_core_tracer.transport.port import (
    Direction, InputPort, IntentKind, Port, PortIntent, neighbor,
)

PortMap = Mapping[Tuple[Coord, Direction], Port]

# @intent:responsibility 成立した1組のハンドシェイクを表します。
@dataclass(frozen=True)
class HandshakeMatch:
    """
    portを介して成立した読み書きの組。
    writer/readerがNoneの側は境界スタブです。
    """
    port: Port
    writer: Optional[Coord]
    reader: Optional[Coord]

    @property
    def write_direction(self) -> Direction:
        return self.port.direction

    @property
    def read_direction(self) -> Direction:
        return self.port.direction.opposite

# @intent:responsibility 意図の集合に対して決定的なマッチングを計算します。
class HandshakeResolver:
    """
    第1段階で具体方向同士の組を確定させ、第2段階で残りの意図を行優先の座標順に走査し、
    各意図の候補方向を正規順序 (UP, LEFT, RIGHT, DOWN) で試して最初に成立する相手と組ませます。
    1ノードは1サイクルに高々1回、1ポートは高々1回の転送にしか関与しません。
    """
    def __init__(self, intents: Mapping[Coord, PortIntent], ports: PortMap):
        self._intents: Dict[Coord, PortIntent] = dict(intents)
        self._ports = ports
        self._matched: Set[Coord] = set()
        self._used_ports: Set[Tuple[Coord, Direction]] = set()
        self._matches: List[HandshakeMatch] = []

    def resolve(self) -> List[HandshakeMatch]:
        order = sorted(self._intents)

        # 1. 具体方向同士
        for coord in order:
            intent = self._intents[coord]
            if coord in self._matched or len(intent.directions) != 1:
                continue
            self._try_match(coord, intent, intent.directions[0], allow_any_partner=False)

        # 2. ANYを含む残りの意図
        for coord in order:
            if coord in self._matched:
                continue
            intent = self._intents[coord]
            for direction in intent.directions:
                if self._try_match(coord, intent, direction, allow_any_partner=True):
                    break

        return list(self._matches)

    # @intent:responsibility 指定方向で相手が成立するかを判定し、成立すれば記録します。
    def _try_match(self, coord: Coord, intent: PortIntent, direction: Direction,
                   allow_any_partner: bool) -> bool:
        if intent.kind == IntentKind.WRITE:
            port = self._ports.get((coord, direction))
            if port is None or port.key in self._used_ports:
                return False
            if port.accepts_external_write():
                self._record(port, writer=coord, reader=None)
                return True
            partner = port.target
            if self._partner_accepts(partner, IntentKind.READ, direction.opposite, allow_any_partner):
                self._record(port, writer=coord, reader=partner)
                return True
            return False

        partner = neighbor(coord, direction)
        port = self._ports.get((partner, direction.opposite))
        if port is None or port.key in self._used_ports:
            return False
        if isinstance(port, InputPort):
            if port.value is None:
                return False
            self._record(port, writer=None, reader=coord)
            return True
        if self._partner_accepts(partner, IntentKind.WRITE, direction.opposite, allow_any_partner):
            self._record(port, writer=partner, reader=coord)
            return True
        return False

    # @intent:responsibility 相手ノードが補完的な意図を未解決のまま保持しているかを返します。
    def _partner_accepts(self, partner: Coord, kind: IntentKind, direction: Direction,
                         allow_any_partner: bool) -> bool:
        if partner in self._matched:
            return False
        other = self._intents.get(partner)
        if other is None or other.kind != kind:
            return False
        if other.is_any and not allow_any_partner:
            return False
        return direction in other.directions

    def _record(self, port: Port, writer: Optional[Coord], reader: Optional[Coord]) -> None:
        for node in (writer, reader):
            if node is not None:
                self._matched.add(node)
        self._used_ports.add(port.key)
        self._matches.append(HandshakeMatch(port=port, writer=writer, reader=reader))

# @intent:responsibility 意図の集合を解決する関数形式のエントリポイント。
def resolve_handshakes(intents: Mapping[Coord, PortIntent], ports: PortMap) -> List[HandshakeMatch]:
    return HandshakeResolver(intents, ports).resolve()
