# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Players — clients for the playback device whose artwork is mirrored.

A player client does NOT keep state.  It answers "what is playing right
now?" and "give me the artwork bytes for this track" with one request each,
and leaves caching and display to the sync loop.

Current players:
  plexamp.py  — Plexamp timeline poll + Plex Media Server artwork
"""
