# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Error taxonomy for the Plexamp Deck plugin.

  TransientQueryError  — a status poll or artwork fetch failed; the sync loop
                         skips the tick and the next tick is the only retry.
  PersistError         — a cache entry could not be written; tick is a no-op.
  StartupError         — connectivity check, Stream Deck handshake or default
                         artwork failed; the only error that ends the process.
"""


class PlexDeckError(Exception):
    """Base class for all plugin errors."""


class TransientQueryError(PlexDeckError):
    """A request to Plexamp or Plex failed (network, HTTP status or decode)."""


class StatusQueryError(TransientQueryError):
    """The Plexamp timeline poll failed."""


class FetchError(TransientQueryError):
    """Downloading a thumbnail from the Plex server failed."""


class PersistError(PlexDeckError):
    """Writing a thumbnail cache entry failed."""


class StartupError(PlexDeckError):
    """Fatal problem while bringing the plugin up."""
