"""Built-in checks and policy manifest management."""

from .builtin_checks import POD_SECURITY_ENFORCE_LABEL, BuiltinRuleChecker
from .policy_manager import PolicyEntry, PolicyLoadError, PolicyManager, PolicyManifestError

__all__ = [
    "BuiltinRuleChecker",
    "POD_SECURITY_ENFORCE_LABEL",
    "PolicyEntry",
    "PolicyLoadError",
    "PolicyManager",
    "PolicyManifestError",
]
