# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SurfaceRegistry — Stream Deck keys currently showing the Plexamp action.

Mutated only by the plugin's event handler (willAppear / willDisappear).
The sync loop iterates ``members()``, which returns a frozen copy, so a key
appearing or disappearing while a broadcast is awaiting a send never
changes the set being iterated.
"""

import logging

log = logging.getLogger(__name__)


class SurfaceRegistry:
    """Set of visible action contexts. Add/remove are idempotent."""

    def __init__(self):
        self._contexts: set[str] = set()

    def add(self, context: str) -> None:
        if context in self._contexts:
            return
        self._contexts.add(context)
        log.info("Surface appeared: %s (%d visible)", context, len(self._contexts))

    def remove(self, context: str) -> None:
        if context not in self._contexts:
            return
        self._contexts.discard(context)
        log.info("Surface disappeared: %s (%d visible)", context, len(self._contexts))

    def members(self) -> frozenset[str]:
        return frozenset(self._contexts)

    def __contains__(self, context: str) -> bool:
        return context in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)
