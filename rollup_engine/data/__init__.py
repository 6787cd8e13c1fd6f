"""
Data Generation Module
"""
from .generators import DataGenerator, SyntheticDataset

__all__ = [
    "DataGenerator",
    "SyntheticDataset",
]
