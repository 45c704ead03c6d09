"""
Module: backend/models/__init__.py
Unified comment style: module docstring + minimal inline notes.
"""
from .shop import ShopSettings

__all__ = [
    "ShopSettings",
]
