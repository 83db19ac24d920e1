from .cycle_resolver import CycleResolver
from .load_derivation import LoadDerivation

__all__ = ["CycleResolver", "LoadDerivation"]
