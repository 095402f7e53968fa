"""Stock Scout - stock research and screening dashboard backend."""

__version__ = "1.0.0"
