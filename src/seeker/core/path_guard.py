# src/seeker/core/path_guard.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import logging
from typing import Iterable, List, Protocol

from .exceptions import AccessDenied
from .models import Authorization, Mount

log = logging.getLogger(__name__)


class MountRegistry(Protocol):
    """Read-only view of the administrator-configured mounts."""

    def list_mounts(self) -> List[Mount]:
        ...


class StaticMountRegistry:
    """Mount registry backed by the `mounts` configuration key."""

    def __init__(self, mounts: Iterable):
        self._mounts = [m if isinstance(m, Mount) else Mount(**m) for m in mounts]

    def list_mounts(self) -> List[Mount]:
        return list(self._mounts)


def normalize_path(path: str) -> str:
    """Collapses duplicate separators and trailing slashes without touching '..' segments."""
    parts = [p for p in path.split("/") if p not in ("", ".")]
    normalized = "/" + "/".join(parts)
    return normalized


def has_traversal(path: str) -> bool:
    return ".." in path.split("/")


def is_within(path: str, root: str) -> bool:
    """True if `path` equals `root` or sits below it on a separator boundary."""
    root = normalize_path(root)
    if path == root or root == "/":
        return True
    return path.startswith(root + "/")


class PathGuard:
    """Restricts every filesystem access to the configured mounts."""

    def __init__(self, registry: MountRegistry):
        self.registry = registry

    def authorize(self, path: str) -> Authorization:
        if not path:
            return Authorization(allowed=False, reason="Path cannot be empty")
        if has_traversal(path):
            return Authorization(allowed=False, reason="Relative pathing ('..') is not allowed")
        if not path.startswith("/"):
            return Authorization(allowed=False, reason="Path must be absolute")

        normalized = normalize_path(path)
        # Polled on every check so mount changes apply immediately.
        for mount in self.registry.list_mounts():
            if is_within(normalized, mount.path):
                return Authorization(allowed=True)
        return Authorization(allowed=False, reason="Access to the specified path is denied")

    def ensure_allowed(self, path: str) -> str:
        """Returns the normalized path or raises AccessDenied."""
        result = self.authorize(path)
        if not result.allowed:
            log.warning(f"Denied access to '{path}': {result.reason}")
            raise AccessDenied(result.reason)
        return normalize_path(path)
