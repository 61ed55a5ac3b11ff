"""Grammarly optimizer package."""

from .config import AppSettings, OptimizeRequest
from .optimizer import OptimizationOrchestrator, run_optimization

__all__ = ["AppSettings", "OptimizeRequest", "OptimizationOrchestrator", "run_optimization"]
