"""
Shared compute infrastructure for bayesmixed.

IMPORTANT: This is NOT where domain algorithms live. Those go in their
domain packages (sampling/, loo/, ...). This module contains shared
execution infrastructure.

Submodules:
    timing: Execution timing and wall-clock budgets
"""

from bayesmixed.core.compute.timing import Timer, Deadline, timed

__all__ = [
    "Timer",
    "Deadline",
    "timed",
]
