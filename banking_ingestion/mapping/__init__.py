"""Cell normalization and the statement parser. ZERO I/O."""
