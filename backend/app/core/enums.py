# backend/app/core/enums.py
"""
Core enums for the service booking platform.

Booking and discount statuses live next to their models; this module holds
the actor and action vocabulary shared by services, permissions and routes.
"""

from enum import Enum


class ActorRole(str, Enum):
    """
    Roles that can act on a booking.

    Each role is a distinct authorization scope in front of the same
    lifecycle rules.
    """

    CUSTOMER = "customer"
    TECHNICIAN = "technician"
    ADMIN = "admin"
    SYSTEM = "system"


class BookingAction(str, Enum):
    """Operations an actor can request on a booking."""

    CREATE = "create"
    ACCEPT = "accept"
    REJECT = "reject"
    COMPLETE = "complete"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    REACTIVATE = "reactivate"
    ASSIGN_TECHNICIAN = "assign_technician"
    RECORD_PAYMENT = "record_payment"


class RecipientRole(str, Enum):
    """Who a notification is addressed to."""

    CUSTOMER = "customer"
    TECHNICIAN = "technician"
    ADMIN = "admin"
