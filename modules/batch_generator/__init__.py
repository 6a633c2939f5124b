"""
Batch Generator module.

Part 1: Lifecycle tracking (per-item state for the presentation layer)
Part 2: Orchestrator (concurrent fan-out with retry)
Part 3: Process (configuration check, quota gate, orchestration)
"""

from modules.batch_generator.process import process

__all__ = ["process"]
