"""Local runner for composite, node and container actions."""

__version__ = "0.1.0"
