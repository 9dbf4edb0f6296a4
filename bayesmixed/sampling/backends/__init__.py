"""
Sampling backends.

Available backends:
    CPUNUTSBackend: multinomial NUTS, chains on a thread pool
"""

from bayesmixed.sampling.backends.cpu import CPUNUTSBackend

__all__ = [
    "CPUNUTSBackend",
]
