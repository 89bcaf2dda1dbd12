"""BMFS disk image tooling and simulated teaching-kernel resources."""

__version__ = "0.1.0"