"""
Self-environment bootstrap for runtimekit.
"""

from .self_env import (
    SELF_PYTHON_VERSION,
    SELF_VERSION,
    SelfBootstrapper,
    ensure_self_venv,
    update_core_shims,
)

__all__ = [
    "SELF_PYTHON_VERSION",
    "SELF_VERSION",
    "SelfBootstrapper",
    "ensure_self_venv",
    "update_core_shims",
]
