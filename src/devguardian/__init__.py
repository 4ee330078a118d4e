"""Kubernetes security auditing with policy evaluation and explained findings."""

__version__ = "0.1.0"
