# tests/core/test_grid.py
"""
grid_core_tracer.core.gridモジュールの単体テスト。
ロックステップ実行、ハンドシェイクによる転送、デッドロック判定、サイクル上限を検証します。
"""
import itertools

import pytest

from grid_core_tracer.arch.node import LastPolicy, NodeMode
from grid_core_tracer.common.errors import DecodeError, DecodeErrorKind, GridNotReadyError
from grid_core_tracer.core.grid import Grid, RunOutcome
from grid_core_tracer.core.snapshot import GridStatus
from grid_core_tracer.transport.port import Direction, IntentKind

# @intent:test_suite グリッドスケジューラの検証。

class TestGridSetup:
    def test_invalid_dimensions(self):
        with pytest.raises(ValueError):
            Grid(0, 3)

    def test_internal_ports_are_created(self):
        grid = Grid(2, 2)
        # 各内部辺に2本（双方向）
        assert len(grid.ports) == 8

    def test_get_node_out_of_range(self):
        with pytest.raises(ValueError):
            Grid(1, 1).get_node((3, 3))

    def test_load_program_from_string(self):
        grid = Grid(1, 1)
        program = grid.load_program((0, 0), "ADD 1\nSUB 2")
        assert len(program) == 2
        assert grid.get_node((0, 0)).mode == NodeMode.RUNNING

    def test_load_error_is_recorded_and_blocks_step(self):
        grid = Grid(1, 2)
        with pytest.raises(DecodeError) as excinfo:
            grid.load_program((0, 1), ["BOGUS"])
        assert excinfo.value.node == (0, 1)
        assert excinfo.value.kind == DecodeErrorKind.UNKNOWN_OPCODE
        assert (0, 1) in grid.load_errors
        with pytest.raises(GridNotReadyError) as not_ready:
            grid.step()
        assert not_ready.value.failed_nodes == [(0, 1)]

    def test_successful_reload_clears_error(self):
        grid = Grid(1, 1)
        with pytest.raises(DecodeError):
            grid.load_program((0, 0), "JMP NOWHERE")
        grid.load_program((0, 0), "NOP")
        assert grid.load_errors == {}
        grid.step()

    def test_attach_to_interior_edge_raises(self):
        grid = Grid(2, 2)
        with pytest.raises(ValueError):
            grid.attach_input((0, 0), Direction.RIGHT, [1])

    def test_duplicate_attachment_raises(self):
        grid = Grid(1, 1)
        grid.attach_output((0, 0), Direction.DOWN)
        with pytest.raises(ValueError):
            grid.attach_output((0, 0), Direction.DOWN)

    # @intent:test_case_setup_lock 実行開始後のトポロジ変更が拒否されることを検証します。
    def test_setup_is_locked_after_first_cycle(self):
        grid = Grid(1, 1)
        grid.load_program((0, 0), "NOP")
        grid.step()
        with pytest.raises(RuntimeError):
            grid.load_program((0, 0), "ADD 1")
        with pytest.raises(RuntimeError):
            grid.attach_output((0, 0), Direction.UP)
        grid.reset()
        grid.load_program((0, 0), "ADD 1")

class TestGridExecution:
    # @intent:test_case_accumulate ポートを使わないADD 1がNサイクル後にmin(N, 999)となることを検証します。
    @pytest.mark.parametrize("cycles", [1, 10, 998, 999, 1200])
    def test_accumulate_saturates(self, cycles):
        grid = Grid(1, 1)
        grid.load_program((0, 0), "ADD 1")
        result = grid.run_until(cycles)
        assert result.outcome == RunOutcome.TIMEOUT
        assert result.cycle_count == cycles
        assert result.snapshot.node((0, 0)).acc == min(cycles, 999)

    # @intent:test_case_same_cycle 両者の意図が同一サイクルに揃えばそのサイクルで転送が成立することを検証します。
    def test_transfer_in_same_cycle(self):
        grid = Grid(2, 1)
        grid.load_program((0, 0), "MOV DOWN, ACC\nMOV ACC, NIL")
        grid.load_program((1, 0), "MOV 5, UP\nHCF")
        snapshot = grid.step()
        assert snapshot.cycle_count == 1
        assert snapshot.node((0, 0)).acc == 5
        assert len(snapshot.transfers) == 1
        transfer = snapshot.transfers[0]
        assert (transfer.writer, transfer.reader, transfer.value) == ((1, 0), (0, 0), 5)

    def test_transfer_waits_for_partner(self):
        grid = Grid(2, 1)
        grid.load_program((0, 0), "NOP\nNOP\nMOV DOWN, ACC\nHCF")
        grid.load_program((1, 0), "MOV 5, UP\nHCF")
        snapshot = grid.step()
        assert snapshot.node((1, 0)).mode == NodeMode.BLOCKED
        assert snapshot.port((1, 0), Direction.UP).value == 5
        grid.step()
        snapshot = grid.step()
        assert snapshot.node((0, 0)).acc == 5
        assert snapshot.port((1, 0), Direction.UP).is_empty
        assert snapshot.cycle_count == 3

    # @intent:test_case_port_to_port ポート間MOVの中継は読み出しの次のサイクルから書き込みを提示することを検証します。
    def test_relay_port_to_port(self):
        grid = Grid(3, 1)
        grid.load_program((0, 0), "MOV 7, DOWN\nHCF")
        grid.load_program((1, 0), "MOV UP, DOWN")
        grid.load_program((2, 0), "MOV UP, ACC\nHCF")
        first = grid.step()
        assert [(t.writer, t.reader) for t in first.transfers] == [((0, 0), (1, 0))]
        assert first.node((1, 0)).intent.kind == IntentKind.WRITE
        second = grid.step()
        assert [(t.writer, t.reader) for t in second.transfers] == [((1, 0), (2, 0))]
        assert second.node((2, 0)).acc == 7

    # @intent:test_case_deadlock 互いに読み出しを待つ2ノードはサイクル1でデッドロックとなることを検証します。
    def test_mutual_readers_deadlock(self):
        grid = Grid(1, 2)
        grid.load_program((0, 0), "MOV RIGHT, ACC")
        grid.load_program((0, 1), "MOV LEFT, ACC")
        result = grid.run_until(100)
        assert result.outcome == RunOutcome.DEADLOCK
        assert result.cycle_count == 1
        assert result.snapshot.status == GridStatus.DEADLOCK
        assert result.snapshot.transfers == ()
        assert all(node.mode == NodeMode.BLOCKED for node in result.snapshot.nodes)

    def test_reader_with_unattached_edge_deadlocks(self):
        grid = Grid(1, 1)
        grid.load_program((0, 0), "MOV LEFT, ACC")
        assert grid.run_until(5).outcome == RunOutcome.DEADLOCK

    def test_blocked_node_with_running_neighbor_is_not_deadlock(self):
        grid = Grid(1, 2)
        grid.load_program((0, 0), "MOV RIGHT, ACC")
        grid.load_program((0, 1), "ADD 1")
        result = grid.run_until(10)
        assert result.outcome == RunOutcome.TIMEOUT
        assert result.snapshot.node((0, 1)).acc == 10

    def test_halt_when_all_nodes_halt(self):
        grid = Grid(1, 2)
        grid.load_program((0, 0), "ADD 1\nHCF")
        grid.load_program((0, 1), "HCF")
        result = grid.run_until(10)
        assert result.outcome == RunOutcome.HALTED
        assert result.cycles == 2
        assert grid.status == GridStatus.HALTED

    def test_empty_grid_halts_without_cycles(self):
        grid = Grid(2, 2)
        result = grid.run_until(10)
        assert result.outcome == RunOutcome.HALTED
        assert result.cycles == 0
        assert grid.cycle_count == 0

    def test_run_until_requires_positive_budget(self):
        grid = Grid(1, 1)
        with pytest.raises(ValueError):
            grid.run_until(0)

    # @intent:test_case_resume Timeout後に再度run_untilを呼ぶと続きから実行できることを検証します。
    def test_timeout_is_resumable(self):
        grid = Grid(1, 1)
        grid.load_program((0, 0), "ADD 1")
        first = grid.run_until(5)
        second = grid.run_until(5)
        assert first.outcome == second.outcome == RunOutcome.TIMEOUT
        assert second.cycles == 5
        assert second.cycle_count == 10
        assert second.snapshot.node((0, 0)).acc == 10

    def test_until_condition(self):
        grid = Grid(1, 1)
        grid.load_program((0, 0), "ADD 1")
        result = grid.run_until(100, until=lambda g: g.get_node((0, 0)).state.acc >= 4)
        assert result.outcome == RunOutcome.CONDITION_MET
        assert result.cycle_count == 4

    def test_reset_restores_initial_state(self):
        grid = Grid(1, 1)
        grid.load_program((0, 0), "ADD 1", acc=3)
        grid.run_until(4)
        grid.reset()
        snapshot = grid.snapshot()
        assert snapshot.cycle_count == 0
        assert snapshot.node((0, 0)).acc == 3
        assert snapshot.status == GridStatus.RUNNING

class TestBoundaryStubs:
    def test_input_to_output_pipeline(self):
        grid = Grid(1, 1)
        grid.attach_input((0, 0), Direction.UP, [1, 2, 3], label="IN")
        grid.attach_output((0, 0), Direction.DOWN, label="OUT")
        grid.load_program((0, 0), "MOV UP, ACC\nADD ACC\nMOV ACC, DOWN")
        result = grid.run_until(50)
        # 入力が尽きると読み出しで永久にブロックする
        assert result.outcome == RunOutcome.DEADLOCK
        assert grid.output_values("OUT") == [2, 4, 6]
        assert grid.inputs[0].consumed == [1, 2, 3]

    # @intent:test_case_feed 入力が尽きてデッドロックした後でも、追加供給すれば実行を再開できることを検証します。
    def test_feed_resumes_after_exhaustion(self):
        grid = Grid(1, 1)
        port = grid.attach_input((0, 0), Direction.LEFT, [1])
        grid.load_program((0, 0), "ADD LEFT")
        assert grid.run_until(10).outcome == RunOutcome.DEADLOCK
        port.feed([-2000])
        result = grid.run_until(1)
        assert result.outcome == RunOutcome.TIMEOUT
        assert result.snapshot.node((0, 0)).acc == -998

    def test_any_write_reaches_output(self):
        grid = Grid(1, 1)
        grid.attach_output((0, 0), Direction.RIGHT, label="OUT")
        grid.load_program((0, 0), "MOV 9, ANY\nHCF")
        grid.run_until(5)
        assert grid.output_values("OUT") == [9]
        assert grid.get_node((0, 0)).state.last == Direction.RIGHT

    def test_unknown_output_label(self):
        with pytest.raises(KeyError):
            Grid(1, 1).output_values("NOPE")

    def test_reset_rewinds_inputs_and_outputs(self):
        grid = Grid(1, 1)
        grid.attach_input((0, 0), Direction.LEFT, [4])
        grid.attach_output((0, 0), Direction.RIGHT, label="OUT")
        grid.load_program((0, 0), "MOV LEFT, RIGHT")
        grid.run_until(10)
        assert grid.output_values("OUT") == [4]
        grid.reset()
        assert grid.output_values("OUT") == []
        grid.run_until(10)
        assert grid.output_values("OUT") == [4]

    # @intent:test_case_reset_replay 無限イテラブルや一度きりのジェネレータでも、reset後に同じ軌跡を再現することを検証します。
    @pytest.mark.parametrize("make_values, expected", [
        (lambda: itertools.count(1), [1, 2, 3, 4]),
        (lambda: (v for v in [1, 2, 3]), [1, 2, 3]),
    ])
    def test_reset_replays_streamed_inputs(self, make_values, expected):
        grid = Grid(1, 1)
        grid.attach_input((0, 0), Direction.UP, make_values())
        grid.attach_output((0, 0), Direction.DOWN, label="OUT")
        grid.load_program((0, 0), "MOV UP, DOWN")
        first = [grid.step() for _ in range(8)]
        assert grid.output_values("OUT") == expected
        grid.reset()
        second = [grid.step() for _ in range(8)]
        assert grid.output_values("OUT") == expected
        assert first == second

class TestGridInvariants:
    def _build_ring(self):
        # 2x2の環状パイプライン。値は1つだけが周回する
        grid = Grid(2, 2)
        grid.load_program((0, 0), "MOV 1, RIGHT\nLOOP: MOV DOWN, RIGHT\nJMP LOOP")
        grid.load_program((0, 1), "MOV LEFT, ACC\nADD 1\nMOV ACC, DOWN")
        grid.load_program((1, 1), "MOV UP, ACC\nADD 1\nMOV ACC, LEFT")
        grid.load_program((1, 0), "MOV RIGHT, ACC\nADD 1\nMOV ACC, UP")
        return grid

    # @intent:test_case_determinism 同一の初期状態からの実行は常に同一の軌跡となることを検証します。
    def test_runs_are_deterministic(self):
        first, second = self._build_ring(), self._build_ring()
        for _ in range(60):
            assert first.step() == second.step()

    # @intent:test_case_conservation 入力から送られた値は失われず重複もせずに各ノードを経由して出力へ届くことを検証します。
    def test_values_are_conserved(self):
        values = [5, -3, 7, 0, 999]
        grid = Grid(1, 3)
        grid.attach_input((0, 0), Direction.LEFT, values)
        grid.attach_output((0, 2), Direction.RIGHT, label="OUT")
        for col in range(3):
            grid.load_program((0, col), "MOV LEFT, RIGHT")

        sent = {coord: [] for coord in grid.coords()}
        received = {coord: [] for coord in grid.coords()}
        injected, delivered = [], []
        for _ in range(100):
            snapshot = grid.step()
            for transfer in snapshot.transfers:
                if transfer.writer is None:
                    injected.append(transfer.value)
                else:
                    sent[transfer.writer].append(transfer.value)
                if transfer.reader is None:
                    delivered.append(transfer.value)
                else:
                    received[transfer.reader].append(transfer.value)
            if snapshot.status != GridStatus.RUNNING:
                break

        assert snapshot.status == GridStatus.DEADLOCK
        assert injected == values
        assert delivered == values
        for coord in grid.coords():
            assert sent[coord] == received[coord]

    # @intent:test_case_exclusivity 全転送は1つの書き手と1つの読み手を持ち、各ノードは1サイクルに高々1回しか関与しないことを検証します。
    def test_transfers_are_exclusive(self):
        grid = self._build_ring()
        total = 0
        for _ in range(60):
            snapshot = grid.step()
            participants = []
            for transfer in snapshot.transfers:
                assert transfer.writer is not None and transfer.reader is not None
                participants.extend([transfer.writer, transfer.reader])
            assert len(participants) == len(set(participants))
            total += len(snapshot.transfers)
        assert total > 0

    def test_values_stay_in_range(self):
        grid = Grid(1, 2)
        grid.load_program((0, 0), "ADD 999\nMOV ACC, RIGHT")
        grid.load_program((0, 1), "MOV LEFT, ACC\nADD ACC")
        for _ in range(30):
            snapshot = grid.step()
            for node in snapshot.nodes:
                assert -999 <= node.acc <= 999
                assert -999 <= node.bak <= 999

class TestLastPolicy:
    def test_nil_policy_reads_zero(self):
        grid = Grid(1, 1)
        grid.load_program((0, 0), "MOV LAST, ACC\nHCF", acc=5)
        result = grid.run_until(5)
        assert result.outcome == RunOutcome.HALTED
        assert result.snapshot.node((0, 0)).acc == 0
        assert result.snapshot.node((0, 0)).last_fallbacks == 1

    def test_stall_policy_deadlocks(self):
        grid = Grid(1, 1, last_policy=LastPolicy.STALL)
        grid.load_program((0, 0), "MOV LAST, ACC")
        result = grid.run_until(5)
        assert result.outcome == RunOutcome.DEADLOCK
        assert result.cycle_count == 1

    def test_last_follows_any(self):
        grid = Grid(1, 2)
        grid.load_program((0, 0), "MOV 3, RIGHT\nMOV 4, RIGHT\nHCF")
        grid.load_program((0, 1), "MOV ANY, ACC\nADD LAST\nHCF")
        result = grid.run_until(10)
        node = result.snapshot.node((0, 1))
        assert node.last == Direction.LEFT
        assert node.acc == 7
