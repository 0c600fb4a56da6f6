"""
Utils package
"""

from .amounts import parse_amount

__all__ = [
    "parse_amount",
]
