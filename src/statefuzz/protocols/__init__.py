"""Protocol interfaces for pluggable components."""

from statefuzz.protocols.reporter import Reporter
from statefuzz.protocols.sut_adapter import SutAdapter

__all__ = [
    "Reporter",
    "SutAdapter",
]
