"""Push-notification handling."""

from __future__ import annotations

from .notifier import ChangeNotifier

__all__ = ["ChangeNotifier"]
