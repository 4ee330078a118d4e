"""Minimal smoke tests for the audit package scaffolding."""


def test_package_importable() -> None:
    """Ensure the top-level package exposes the expected namespace."""
    import devguardian  # noqa: F401  # Imported for side effects

    assert devguardian.__version__
