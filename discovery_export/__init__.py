"""
Catalog discovery export.

Computes full and incremental MARC exports of library catalog records for
publication to an external discovery index.
"""

__version__ = "0.1.0"
