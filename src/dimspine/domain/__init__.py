"""Field normalization, parsing and record models. Pure functions, no I/O."""
