"""Inspection dashboard client: mirrors remote settings and inspections into a local view."""

__version__ = "0.1.0"
