"""Observability helpers."""

from .logging import enable_debug, enable_debug_tree, get_logger

__all__ = ["enable_debug", "enable_debug_tree", "get_logger"]
