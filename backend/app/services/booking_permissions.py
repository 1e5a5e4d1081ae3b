# backend/app/services/booking_permissions.py
"""
Capability filter in front of the booking lifecycle.

Each actor role exposes a subset of booking actions, and customers and
technicians are further limited to bookings they own or are assigned to.
Failing either check raises ForbiddenException, which callers must keep
distinct from a ConflictException about the booking's state.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional

from ..core.enums import ActorRole, BookingAction
from ..core.exceptions import ForbiddenException

if TYPE_CHECKING:
    from ..models.booking import Booking


@dataclass(frozen=True)
class Actor:
    """An already-authenticated caller."""

    id: str
    role: ActorRole
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is ActorRole.ADMIN

    @property
    def label(self) -> str:
        return f"{self.role.value}:{self.id}"


ACTION_CAPABILITIES: Dict[ActorRole, FrozenSet[BookingAction]] = {
    ActorRole.CUSTOMER: frozenset(
        {BookingAction.CREATE, BookingAction.CANCEL, BookingAction.RESCHEDULE}
    ),
    ActorRole.TECHNICIAN: frozenset({BookingAction.COMPLETE}),
    ActorRole.ADMIN: frozenset(BookingAction),
    # Payment gateway callbacks
    ActorRole.SYSTEM: frozenset({BookingAction.RECORD_PAYMENT}),
}


def can_perform(actor: Actor, action: BookingAction) -> bool:
    return action in ACTION_CAPABILITIES.get(actor.role, frozenset())


def owns_booking(actor: Actor, booking: "Booking") -> bool:
    """Whether the booking falls inside the actor's scope."""
    if actor.role in (ActorRole.ADMIN, ActorRole.SYSTEM):
        return True
    if actor.role is ActorRole.CUSTOMER:
        return booking.customer_id == actor.id
    if actor.role is ActorRole.TECHNICIAN:
        return booking.technician_id is not None and booking.technician_id == actor.id
    return False


def ensure_can_act(actor: Actor, action: BookingAction, booking: Optional["Booking"] = None) -> None:
    """
    Raise ForbiddenException unless ``actor`` may perform ``action``.

    Args:
        actor: The caller
        action: Requested booking action
        booking: Target booking, when the action applies to an existing one

    Raises:
        ForbiddenException: If the role lacks the capability or the booking
            is outside the actor's scope
    """
    if not can_perform(actor, action):
        raise ForbiddenException(
            f"A {actor.role.value} cannot {action.value} bookings",
            code="ACTION_NOT_PERMITTED",
            details={"role": actor.role.value, "action": action.value},
        )
    if booking is not None and not owns_booking(actor, booking):
        raise ForbiddenException(
            "You do not have access to this booking",
            code="NOT_BOOKING_PARTICIPANT",
            details={"booking_id": booking.id, "action": action.value},
        )


def ensure_can_view(actor: Actor, booking: "Booking") -> None:
    if not owns_booking(actor, booking):
        raise ForbiddenException(
            "You do not have access to this booking",
            code="NOT_BOOKING_PARTICIPANT",
            details={"booking_id": booking.id},
        )
