# Import all models to ensure they are registered with SQLAlchemy
from . import (
    booking,
    credit,
)

__all__ = [
    "booking",
    "credit",
]
