"""
Data Ingestion Module
"""
from .seed_db import execute_batch_insert, seed_database

__all__ = [
    "execute_batch_insert",
    "seed_database",
]
