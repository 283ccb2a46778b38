import os
from typing import Any, Dict, List, Tuple

import yaml

from grid_core_tracer.transport.port import Direction
from .models import GridConfig, InputConfig, NodeConfig, OutputConfig

class ConfigLoader:
    def load_from_file(self, path: str) -> GridConfig:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
        config = self._parse_config(data or {})
        config.base_dir = os.path.dirname(os.path.abspath(path))
        return config

    def load_from_string(self, text: str) -> GridConfig:
        return self._parse_config(yaml.safe_load(text) or {})

    def _parse_config(self, data: Dict[str, Any]) -> GridConfig:
        grid_data = data.get("grid")
        if not isinstance(grid_data, dict):
            raise ValueError("Missing 'grid' section with 'rows' and 'cols'")
        rows = self._parse_int(grid_data.get("rows"))
        cols = self._parse_int(grid_data.get("cols"))

        last_policy = str(data.get("last_policy", "NIL")).upper()
        if last_policy not in ("NIL", "STALL"):
            raise ValueError(f"Invalid last_policy: {last_policy}")

        max_lines = data.get("max_program_lines", 15)
        if max_lines is not None:
            max_lines = self._parse_int(max_lines)

        # Parse Nodes
        nodes = []
        for node_data in self._parse_list(data, "nodes"):
            node_data = self._parse_mapping(node_data, "nodes[]")
            registers = self._parse_mapping(node_data.get("registers"), "registers")
            nodes.append(NodeConfig(
                at=self._parse_coord(node_data.get("at")),
                source=node_data.get("source"),
                file=node_data.get("file"),
                acc=self._parse_int(registers.get("acc", 0)),
                bak=self._parse_int(registers.get("bak", 0)),
            ))

        # Parse Boundary Stubs
        inputs = []
        for input_data in self._parse_list(data, "inputs"):
            input_data = self._parse_mapping(input_data, "inputs[]")
            inputs.append(InputConfig(
                at=self._parse_coord(input_data.get("at")),
                direction=self._parse_direction(input_data.get("direction")),
                values=[self._parse_int(v) for v in self._parse_list(input_data, "values")],
                label=input_data.get("label", ""),
            ))

        outputs = []
        for output_data in self._parse_list(data, "outputs"):
            output_data = self._parse_mapping(output_data, "outputs[]")
            outputs.append(OutputConfig(
                at=self._parse_coord(output_data.get("at")),
                direction=self._parse_direction(output_data.get("direction")),
                label=output_data.get("label", ""),
            ))

        return GridConfig(
            rows=rows,
            cols=cols,
            cycle_limit=self._parse_int(data.get("cycle_limit", 10000)),
            last_policy=last_policy,
            max_program_lines=max_lines,
            programs=data.get("programs"),
            nodes=nodes,
            inputs=inputs,
            outputs=outputs,
        )

    def _parse_int(self, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer format: {value}")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            if value.startswith("0x"):
                return int(value, 16)
            return int(value)
        raise ValueError(f"Invalid integer format: {value}")

    # 空のキー（YAMLではNone）は空リストとして扱います
    def _parse_list(self, data: Dict[str, Any], key: str) -> List[Any]:
        value = data.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"'{key}' must be a list, got: {value}")
        return value

    def _parse_mapping(self, value: Any, key: str) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError(f"'{key}' must be a mapping, got: {value}")
        return value

    def _parse_coord(self, value: Any) -> Tuple[int, int]:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(f"Invalid node coordinate: {value}")
        return (self._parse_int(value[0]), self._parse_int(value[1]))

    def _parse_direction(self, value: Any) -> Direction:
        try:
            return Direction(str(value).upper())
        except ValueError:
            raise ValueError(f"Invalid direction: {value}")
