"""Lesson Media Queue - durable job queue for lesson media processing."""

__version__ = "0.1.0"
