"""Offer execution."""

from shh_node.execution.engine import ExecutionEngine

__all__ = ["ExecutionEngine"]
