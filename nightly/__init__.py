"""Nightly multi-target build and publish orchestrator."""

__version__ = "0.1.0"
