"""
E-Commerce Rollup Engine

Precomputed analytical rollups over raw e-commerce transactions, refreshed
wholesale and served from immutable snapshots.
"""

__version__ = "1.0.0"
