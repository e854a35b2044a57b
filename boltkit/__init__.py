"""Page-level inspection, consistency checking and repair of B+tree key/value database files."""

__version__ = "0.1.0"
__all__ = ["check", "guts", "node", "page", "split", "stats", "surgeon", "walk", "xray"]