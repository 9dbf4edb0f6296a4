"""
Core protocols for bayesmixed.

These define structural interfaces that domain-specific implementations
must satisfy. We use Protocol (structural typing) rather than ABC (nominal
typing) so that alternative backends can be dropped in without inheriting
from anything in this package.
"""

from typing import Protocol, TypeVar, runtime_checkable

D = TypeVar('D')  # Design type
P = TypeVar('P')  # Parameter payload type


@runtime_checkable
class Backend(Protocol[D, P]):
    """
    Protocol for computational backends.

    Each backend knows how to take a domain-specific design and produce
    a domain-specific parameter payload wrapped in a Result.

    Backends are stateless: all configuration is passed via the design
    or at construction time. This makes them easy to test and swap.

    Type Parameters:
        D: The design type this backend accepts
        P: The parameter payload type this backend produces
    """

    @property
    def name(self) -> str:
        """
        Backend identifier.

        Convention: '{device}_{algorithm}'
        Examples: 'cpu_nuts', 'cpu_psis'
        """
        ...

    def solve(self, design: D) -> 'Result[P]':
        """
        Execute the statistical computation.

        Raises:
            NumericalError: If the computation cannot start (non-finite density)
            ValidationError: If design is invalid for this backend
        """
        ...
