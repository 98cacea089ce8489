"""Alert lifecycle management."""

from vigil.lifecycle.manager import (
    CONDITION_RESOLVED,
    MANUALLY_RESOLVED,
    SYSTEM_USER,
    AlertLifecycleManager,
    format_message,
)

__all__ = ["CONDITION_RESOLVED", "MANUALLY_RESOLVED", "SYSTEM_USER", "AlertLifecycleManager", "format_message"]
