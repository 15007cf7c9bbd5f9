# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Plexamp Deck — mirrors Plexamp's now-playing artwork onto Stream Deck keys."""

__version__ = "0.1.0"
