"""Capture helpers: URL canonicalization, content identifiers, derived fields."""
