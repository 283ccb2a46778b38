# tests/transport/test_handshake.py
"""
grid_core_tracer.transport.handshakeモジュールの単体テスト。
意図の集合から決定的にハンドシェイクが成立することを検証します。
"""
import pytest

from grid_core_tracer.transport.handshake import resolve_handshakes
from grid_core_tracer.transport.port import (
    CANONICAL_ORDER, Direction, InputPort, IntentKind, OutputPort, Port, PortIntent, neighbor,
)

# @intent:test_suite ハンドシェイク解決の検証。

def _internal_ports(rows, cols):
    ports = {}
    for r in range(rows):
        for c in range(cols):
            for d in CANONICAL_ORDER:
                nr, nc = neighbor((r, c), d)
                if 0 <= nr < rows and 0 <= nc < cols:
                    ports[((r, c), d)] = Port((r, c), d)
    return ports

def read(*directions):
    return PortIntent(IntentKind.READ, tuple(directions))

def write(value, *directions):
    return PortIntent(IntentKind.WRITE, tuple(directions), value)

ANY = CANONICAL_ORDER

class TestResolveHandshakes:
    @pytest.fixture
    def ports(self):
        return _internal_ports(3, 3)

    def test_concrete_pair_matches(self, ports):
        intents = {(0, 0): write(5, Direction.RIGHT), (0, 1): read(Direction.LEFT)}
        matches = resolve_handshakes(intents, ports)
        assert len(matches) == 1
        assert matches[0].writer == (0, 0)
        assert matches[0].reader == (0, 1)
        assert matches[0].port.key == ((0, 0), Direction.RIGHT)

    def test_mismatched_directions_do_not_match(self, ports):
        intents = {(0, 0): write(5, Direction.RIGHT), (0, 1): read(Direction.RIGHT)}
        assert resolve_handshakes(intents, ports) == []

    def test_two_readers_never_match(self, ports):
        intents = {(0, 0): read(Direction.RIGHT), (0, 1): read(Direction.LEFT)}
        assert resolve_handshakes(intents, ports) == []

    # @intent:test_case_any_order ANY読み出しは正規順序(UP, LEFT, RIGHT, DOWN)で最初の相手を選ぶことを検証します。
    def test_any_reader_prefers_canonical_order(self, ports):
        intents = {
            (1, 1): read(*ANY),
            (2, 1): write(1, Direction.UP),    # (1,1)から見てDOWN
            (1, 0): write(2, Direction.RIGHT), # (1,1)から見てLEFT
            (1, 2): write(3, Direction.LEFT),  # (1,1)から見てRIGHT
        }
        matches = resolve_handshakes(intents, ports)
        assert len(matches) == 1
        assert matches[0].writer == (1, 0)
        assert matches[0].read_direction == Direction.LEFT

    # @intent:test_case_exclusivity 1ノードは1サイクルに高々1回しか成立しないことを検証します。
    def test_any_writer_matches_one_reader(self, ports):
        intents = {
            (1, 1): write(9, *ANY),
            (0, 1): read(Direction.DOWN),
            (1, 2): read(Direction.LEFT),
        }
        matches = resolve_handshakes(intents, ports)
        assert len(matches) == 1
        assert matches[0].reader == (0, 1)

    # @intent:test_case_any_contention 同じANY書き込みを複数の読み出しが競合した場合、行優先で先に走査された読み出しが相手を得ることを検証します。
    # 具体方向の読み出しでも、相手がANYであれば走査順で負けます。
    @pytest.mark.parametrize("first, second, second_direction", [
        ((0, 1), (1, 2), Direction.LEFT),
        ((1, 0), (2, 1), Direction.UP),
    ])
    def test_any_partner_goes_to_first_visited_reader(self, ports, first, second, second_direction):
        intents = {
            (1, 1): write(4, *ANY),
            first: read(*ANY),
            second: read(second_direction),
        }
        matches = resolve_handshakes(intents, ports)
        assert [(m.writer, m.reader) for m in matches] == [((1, 1), first)]

    def test_any_to_any_pair(self, ports):
        intents = {(0, 0): write(1, *ANY), (0, 1): read(*ANY)}
        matches = resolve_handshakes(intents, ports)
        assert len(matches) == 1
        assert matches[0].port.key == ((0, 0), Direction.RIGHT)

    # @intent:test_case_order_independence 意図の登録順序が結果に影響しないことを検証します。
    def test_result_independent_of_insertion_order(self, ports):
        items = [
            ((1, 1), read(*ANY)),
            ((0, 1), write(1, Direction.DOWN)),
            ((1, 0), write(2, *ANY)),
            ((2, 0), read(*ANY)),
        ]
        forward = resolve_handshakes(dict(items), ports)
        backward = resolve_handshakes(dict(reversed(items)), ports)
        assert [(m.writer, m.reader, m.port.key) for m in forward] == \
               [(m.writer, m.reader, m.port.key) for m in backward]

    def test_stalled_intent_never_matches(self, ports):
        intents = {(0, 0): read(), (0, 1): write(1, Direction.LEFT)}
        assert resolve_handshakes(intents, ports) == []

class TestBoundaryStubs:
    def test_input_stub_feeds_reader(self):
        ports = {((-1, 0), Direction.DOWN): InputPort((-1, 0), Direction.DOWN, [8])}
        matches = resolve_handshakes({(0, 0): read(Direction.UP)}, ports)
        assert len(matches) == 1
        assert matches[0].writer is None
        assert matches[0].reader == (0, 0)

    def test_exhausted_input_blocks(self):
        ports = {((-1, 0), Direction.DOWN): InputPort((-1, 0), Direction.DOWN, [])}
        assert resolve_handshakes({(0, 0): read(Direction.UP)}, ports) == []

    def test_output_stub_accepts_writer(self):
        ports = {((0, 0), Direction.DOWN): OutputPort((0, 0), Direction.DOWN)}
        matches = resolve_handshakes({(0, 0): write(3, *ANY)}, ports)
        assert len(matches) == 1
        assert matches[0].reader is None

    def test_unattached_edge_blocks(self):
        assert resolve_handshakes({(0, 0): read(Direction.UP)}, {}) == []
