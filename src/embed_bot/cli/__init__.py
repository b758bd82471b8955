"""CLI layer — argument parsing, process startup, and error boundary.

This package is the outermost layer of the application.  It may import
from ``core``, ``infra``, ``slack`` and ``utils``, but no other layer may
import from ``cli``.
"""
