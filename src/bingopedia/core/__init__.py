"""Core module for puzzle generation."""

from .constraints import GroupConstraintChecker
from .generator import GenerationMetrics, GenerationParams, GenerationResult, PuzzleGenerator

__all__ = [
    "GenerationMetrics",
    "GenerationParams",
    "GenerationResult",
    "GroupConstraintChecker",
    "PuzzleGenerator",
]
