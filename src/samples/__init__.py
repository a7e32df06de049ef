"""
Sample reconcilers built on the engine.
"""

from samples.simple import Simple, build_simple_engine, build_simple_reconciler

__all__ = ["Simple", "build_simple_engine", "build_simple_reconciler"]
