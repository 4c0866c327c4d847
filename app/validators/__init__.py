"""
app/validators package marker.
"""

from app.validators.row_validator import InventoryRowValidator, parse_integer

__all__ = [
    "InventoryRowValidator",
    "parse_integer",
]
