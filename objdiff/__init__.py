"""Object file diffing for matching-decompilation projects: code, data and project builds."""

__version__ = "0.1.0"