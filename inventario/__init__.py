#!/usr/bin/env python

"""
    Inventario, an equipment loan ledger for inventories

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

__version__ = "0.1.0"
