"""Command-line interface package for the audit tooling."""

from .app import build_parser, create_resolver, create_service, main, run

__all__ = [
    "build_parser",
    "create_resolver",
    "create_service",
    "main",
    "run",
]
