"""
dil-core

File: src/dil_core/__init__.py

Purpose
- Package root for the DIL intent-spec validator and verification runner.

Functional requirements
- No side effects at import time (no config loading, no logging setup).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
