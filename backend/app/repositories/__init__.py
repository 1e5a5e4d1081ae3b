"""
Repository Pattern Implementation for the booking core.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- BookingRepository: Booking reads and compare-and-swap lifecycle writes
- DiscountRepository: Offer lookup and conditional redemption

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    booking = repository.get_by_id(booking_id)
"""

from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .discount_repository import DiscountRepository
from .factory import RepositoryFactory

__all__ = [
    "BaseRepository",
    "IRepository",
    "RepositoryFactory",
    "BookingRepository",
    "DiscountRepository",
]
