import logging
import os

from grid_core_tracer.common.errors import DecodeError
from grid_core_tracer.core.grid import Grid
from grid_core_tracer.arch.node import LastPolicy
from grid_core_tracer.loader.assembler import NodeAssembler
from grid_core_tracer.loader.loader import ProgramLoader
from .models import GridConfig, NodeConfig

logger = logging.getLogger(__name__)

# @intent:responsibility グリッド構成（Config）に基づいて、Grid、プログラム、境界スタブを生成・接続します。
class GridBuilder:
    def __init__(self, program_loader: ProgramLoader = None):
        self._program_loader = program_loader if program_loader is not None else ProgramLoader()

    def build_grid(self, config: GridConfig) -> Grid:
        grid = Grid(
            config.rows,
            config.cols,
            last_policy=LastPolicy(config.last_policy),
            assembler=NodeAssembler(max_lines=config.max_program_lines),
        )

        if config.programs:
            sections = self._program_loader.load_sections(self._resolve(config, config.programs))
            for index, lines in sorted(sections.items()):
                coord = self._program_loader.section_coord(index, config.rows, config.cols)
                if not any(line.strip() for line in lines):
                    continue
                self._load(grid, coord, lines)

        for node in config.nodes:
            self.apply_node(grid, config, node)

        for region in config.inputs:
            grid.attach_input(region.at, region.direction, region.values, label=region.label)

        for region in config.outputs:
            grid.attach_output(region.at, region.direction, label=region.label)

        return grid

    # @intent:responsibility Configで定義されたノードのプログラムと初期レジスタ値を適用します。
    def apply_node(self, grid: Grid, config: GridConfig, node: NodeConfig) -> None:
        if node.source is not None and node.file is not None:
            raise ValueError(f"Node {node.at} defines both 'source' and 'file'")

        if node.source is not None:
            lines = node.source.splitlines()
        elif node.file is not None:
            lines = self._program_loader.load_source(self._resolve(config, node.file))
        else:
            if tuple(node.at) in grid.load_errors:
                return
            existing = grid.get_node(node.at).program
            if not len(existing):
                logger.warning("Node %s has registers but no program; it stays idle", node.at)
            grid.load_program(node.at, existing, acc=node.acc, bak=node.bak)
            return

        self._load(grid, node.at, lines, acc=node.acc, bak=node.bak)

    # @intent:responsibility デコードに失敗したノードはGridにエラーとして記録され、残りのノードのロードは継続します。
    def _load(self, grid: Grid, coord, source, acc: int = 0, bak: int = 0) -> None:
        try:
            grid.load_program(coord, source, acc=acc, bak=bak)
        except DecodeError as e:
            logger.error("%s", e)

    def _resolve(self, config: GridConfig, path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.join(config.base_dir, path)
