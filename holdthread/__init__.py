"""Reasoning chat service with short-lived digression side-conversations."""

__version__ = "0.1.0"
