"""Route group exports."""

from . import dim_factors, health, rating, zoning

__all__ = ["zoning", "rating", "dim_factors", "health"]
