"""Command-line interface package for the compliance console.

The function :func:`main` is exposed as ``from compliance_console.cli import main``.
The implementation lives in :mod:`compliance_console.cli.main`; importing it
eagerly here rebinds the package attribute ``main`` to the function, while
``compliance_console.cli.main`` remains importable as a module via sys.modules.
"""

from .main import main

__all__ = ["main"]
