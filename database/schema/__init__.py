"""Versioned schema definitions, one module per version (vN.py)."""
