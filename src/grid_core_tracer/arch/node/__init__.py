# src/grid_core_tracer/arch/node/__init__.py
"""
Grid Node Architecture Package
"""
from .cpu import LastPolicy, Node
from .state import NodeMode, NodeState
