# src/grid_core_tracer/ui/app.py
"""
コマンドラインアプリケーションのエントリポイント。
グリッド構成ファイルを読み込み、最後まで実行するか、対話的にステップ実行します。
"""
import argparse
import logging
import sys
from typing import List, Optional, TextIO

from grid_core_tracer.config.builder import GridBuilder
from grid_core_tracer.config.loader import ConfigLoader
from grid_core_tracer.core.grid import Grid, RunOutcome
from grid_core_tracer.core.snapshot import GridStatus
from .text_view import render_grid

def _listings(grid: Grid):
    return {coord: grid.listing(coord) for coord in grid.coords()}

def _render(grid: Grid, out: TextIO) -> None:
    print(render_grid(grid.snapshot(), _listings(grid)), file=out)

def _print_outputs(grid: Grid, out: TextIO) -> None:
    for port in grid.outputs:
        name = port.label or f"{port.source} {port.direction.value}"
        print(f"{name}: {' '.join(str(v) for v in port.values)}", file=out)

# @intent:responsibility サイクル上限まで実行し、結果と出力値を表示します。
def run_batch(grid: Grid, cycles: int, trace: bool, out: TextIO) -> RunOutcome:
    if trace:
        # 1サイクルずつrun_untilに委ね、停止判定をバッチ実行と共有します
        _render(grid, out)
        outcome = RunOutcome.TIMEOUT
        for _ in range(cycles):
            result = grid.run_until(1, until=lambda g: True)
            if result.cycles:
                _render(grid, out)
            if result.outcome != RunOutcome.CONDITION_MET:
                outcome = result.outcome
                break
    else:
        outcome = grid.run_until(cycles).outcome
    print(f"{outcome.value} after {grid.cycle_count} cycles", file=out)
    _print_outputs(grid, out)
    return outcome

# @intent:responsibility Enterで1サイクル、"r"で上限まで実行、"q"で終了する対話ループ。
def run_interactive(grid: Grid, cycles: int, stdin: TextIO, out: TextIO) -> None:
    _render(grid, out)
    for command in stdin:
        command = command.strip().lower()
        if command.startswith("q"):
            break
        if command.startswith("r"):
            result = grid.run_until(cycles)
            _render(grid, out)
            print(f"{result.outcome.value} after {grid.cycle_count} cycles", file=out)
            continue
        if command.startswith("x"):
            grid.reset()
        else:
            grid.step()
        _render(grid, out)
        if grid.status != GridStatus.RUNNING:
            print(f"{grid.status.value} at cycle {grid.cycle_count}", file=out)
    _print_outputs(grid, out)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grid-core-tracer",
        description="Cycle-accurate emulator for a grid of port-connected assembly nodes.",
    )
    parser.add_argument("config", help="YAML grid configuration file")
    parser.add_argument("--cycles", type=int, default=None,
                        help="cycle budget (defaults to cycle_limit from the configuration)")
    parser.add_argument("--step", action="store_true",
                        help="interactive mode: Enter steps, 'r' runs, 'x' resets, 'q' quits")
    parser.add_argument("--trace", action="store_true", help="render the grid after every cycle")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser

# @intent:responsibility アプリケーションのメイン関数。終了コードを返します。
def main(argv: Optional[List[str]] = None, stdin: TextIO = None, out: TextIO = None) -> int:
    args = build_parser().parse_args(argv)
    stdin = stdin if stdin is not None else sys.stdin
    out = out if out is not None else sys.stdout
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    config = ConfigLoader().load_from_file(args.config)
    grid = GridBuilder().build_grid(config)
    if grid.load_errors:
        for error in grid.load_errors.values():
            print(f"error: {error}", file=out)
        return 1

    cycles = args.cycles if args.cycles is not None else config.cycle_limit
    if args.step:
        run_interactive(grid, cycles, stdin, out)
        return 0
    outcome = run_batch(grid, cycles, args.trace, out)
    return 0 if outcome != RunOutcome.TIMEOUT else 2

if __name__ == '__main__':
    sys.exit(main())
