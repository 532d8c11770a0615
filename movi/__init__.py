"""
movi: headless client core for the movi shipment marketplace.
"""

__version__ = "0.1.0"
