"""Fusion Engine: asynchronous job orchestration for upstream image transformations."""

__version__ = "1.0.0"
