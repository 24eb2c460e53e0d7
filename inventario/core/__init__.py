#!/usr/bin/env python

"""
    Core module for Inventario: persistence, catalog, loan ledger
    and incident reports

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

# Subscribes the incident reports filed for degraded returns
from inventario.core import novedades  # noqa: F401,E402
