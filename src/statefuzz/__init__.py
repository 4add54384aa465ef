"""statefuzz: stateful invariant fuzzing with sequence shrinking."""

__version__ = "0.1.0"
