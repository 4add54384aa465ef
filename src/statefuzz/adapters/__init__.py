"""Built-in SUT adapters."""

from statefuzz.adapters.declarative import DeclarativeModelAdapter, Expression, parse_domain
from statefuzz.adapters.model import ModelAdapter, ModelOperation, ModelSnapshot


def register_builtin_adapters(registry) -> None:
    """Register built-in adapters on the given registry."""
    registry.register_adapter("declarative", DeclarativeModelAdapter)


__all__ = [
    "DeclarativeModelAdapter",
    "Expression",
    "ModelAdapter",
    "ModelOperation",
    "ModelSnapshot",
    "parse_domain",
    "register_builtin_adapters",
]
