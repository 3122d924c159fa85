"""
FastAPI application for the license import system.

This package contains the REST API for previewing, committing and
cancelling bulk license imports.
"""

__version__ = "1.0.0"