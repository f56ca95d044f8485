"""
Evelin Command-Line Interface
=============================

This package provides the ``evec`` command-line compiler driver, a
Click-based application with help text and uniform exit codes (see
evelin.cli.errors).
"""

__all__ = ["evec"]
