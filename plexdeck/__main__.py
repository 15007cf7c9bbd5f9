# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

from .plugin import cli

cli()
