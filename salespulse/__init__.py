"""
SalesPulse

Point-of-sale sync and analytics engine for multi-branch retail and
restaurant businesses.
"""

__version__ = "1.0.0"
