"""Convert CI pipeline definitions into the unified harness pipeline format."""

__version__ = "0.1.0"
