# backend/app/repositories/booking_repository.py
"""
Booking Repository for the booking core.

Implements all data access operations for booking management. Every write
that changes lifecycle state is a single conditional UPDATE: the WHERE
clause carries the expected current state, and zero affected rows means a
concurrent writer got there first. Callers never read-modify-write a
booking row through the ORM.

This repository handles:
- Booking lookup by id and booking code
- Actor-scoped listing (customer / technician / all)
- Compare-and-swap status, reschedule, payment and assignment updates
- Reschedule audit rows
- Booking code allocation from the sequence table
"""

from datetime import date
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.timezone_utils import utc_now
from ..models.booking import Booking, BookingStatus
from ..models.booking_reschedule import BookingReschedule
from ..models.booking_sequence import BookingSequence
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

BOOKING_CODE_SEQUENCE = "booking_code"


def insert_if_absent(session: Session, table: Any, values: Dict[str, Any], index_elements: List[str]) -> None:
    """
    INSERT a row unless one with the same key exists, in one statement.

    SQLite and PostgreSQL both support ON CONFLICT DO NOTHING. Other dialects
    fall back to a guarded insert that tolerates losing the race.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        stmt = sqlite.insert(table).values(**values).on_conflict_do_nothing(index_elements=index_elements)
        session.execute(stmt)
        return
    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(**values).on_conflict_do_nothing(
            index_elements=index_elements
        )
        session.execute(stmt)
        return

    key_filter = [getattr(table.c, name) == values[name] for name in index_elements]
    exists = session.execute(select(table).where(*key_filter)).first()
    if exists is None:
        try:
            session.execute(insert(table).values(**values))
        except IntegrityError:
            logger.debug("Concurrent insert won for %s", values)


class BookingRepository(BaseRepository[Booking]):
    """
    Repository for booking data access.

    All lifecycle writes go through the ``*_if`` methods, which return
    ``True`` only when this call actually changed the row.
    """

    def __init__(self, db: Session):
        """Initialize with Booking model."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Reads

    def get_fresh(self, booking_id: str) -> Optional[Booking]:
        """Load a booking, overwriting any stale identity-map copy."""
        try:
            return (
                self.db.query(Booking)
                .populate_existing()
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            self._raise_store_error("retrieve", e)

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        """Find a booking by its human-readable code (case-insensitive)."""
        return self.find_one_by(booking_code=booking_code.strip().upper())

    def list_bookings(
        self,
        *,
        customer_id: Optional[str] = None,
        technician_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Booking]:
        """
        List bookings newest first.

        Args:
            customer_id: Restrict to one customer's bookings
            technician_id: Restrict to one technician's assignments
            status: Optional status filter
            limit: Page size
            offset: Rows to skip

        Returns:
            List of bookings
        """
        query = self.db.query(Booking)
        if customer_id is not None:
            query = query.filter(Booking.customer_id == customer_id)
        if technician_id is not None:
            query = query.filter(Booking.technician_id == technician_id)
        if status is not None:
            query = query.filter(Booking.status == status.value)
        query = query.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(offset).limit(limit)
        return self._execute_query(query)

    def list_reschedules(self, booking_id: str) -> List[BookingReschedule]:
        query = (
            self.db.query(BookingReschedule)
            .filter(BookingReschedule.booking_id == booking_id)
            .order_by(BookingReschedule.created_at.asc())
        )
        return self._execute_query(query)

    # Conditional writes

    def transition_status_if(
        self,
        booking_id: str,
        *,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        values: Dict[str, Any],
        technician_id: Optional[str] = None,
    ) -> bool:
        """
        Move a booking to ``to_status`` only if it is still in one of ``from_statuses``.

        ``values`` holds the stamps written with the status; they may be SQL
        expressions (e.g. a CASE on payment_status). When ``technician_id`` is
        given the row must also still be assigned to that technician.
        """
        sources = [s.value for s in from_statuses]
        stmt = update(Booking).where(Booking.id == booking_id, Booking.status.in_(sources))
        if technician_id is not None:
            stmt = stmt.where(Booking.technician_id == technician_id)
        stmt = stmt.values(status=to_status.value, updated_at=utc_now(), **values)

        changed = self._execute_update("transition", stmt) == 1
        self.logger.debug(
            "CAS %s %s -> %s: %s", booking_id, sources, to_status.value, "applied" if changed else "lost"
        )
        return changed

    def reschedule_if(
        self,
        booking_id: str,
        *,
        from_statuses: Iterable[BookingStatus],
        expected_date: date,
        expected_time: str,
        new_date: date,
        new_time: str,
    ) -> bool:
        """Move the visit only if status, date and time are unchanged since the caller read them."""
        stmt = (
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status.in_([s.value for s in from_statuses]),
                Booking.scheduled_date == expected_date,
                Booking.scheduled_time == expected_time,
            )
            .values(
                scheduled_date=new_date,
                scheduled_time=new_time,
                reschedule_count=Booking.reschedule_count + 1,
                updated_at=utc_now(),
            )
        )
        return self._execute_update("reschedule", stmt) == 1

    def update_payment_if(
        self,
        booking_id: str,
        *,
        expected_payment_status: str,
        values: Dict[str, Any],
    ) -> bool:
        """Apply a gateway result only if the payment axis still holds the value the caller saw."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_status == expected_payment_status)
            .values(updated_at=utc_now(), **values)
        )
        return self._execute_update("record payment", stmt) == 1

    def assign_technician_if(
        self,
        booking_id: str,
        *,
        from_statuses: Iterable[BookingStatus],
        technician_id: str,
        technician_name: Optional[str],
    ) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status.in_([s.value for s in from_statuses]))
            .values(
                technician_id=technician_id,
                technician_name=technician_name,
                updated_at=utc_now(),
            )
        )
        return self._execute_update("assign technician", stmt) == 1

    def add_reschedule_audit(self, **kwargs: Any) -> BookingReschedule:
        try:
            row = BookingReschedule(**kwargs)
            self.db.add(row)
            self.db.flush()
            return row
        except SQLAlchemyError as e:
            self._raise_store_error("record reschedule", e)

    # Booking codes

    def next_booking_code(self, prefix: str, start: int) -> str:
        """
        Allocate the next booking code (``BK1001``, ``BK1002``...).

        The counter row is created on first use, then incremented with a
        single UPDATE inside the caller's transaction, so two concurrent
        creations can never receive the same number.
        """
        try:
            insert_if_absent(
                self.db,
                BookingSequence.__table__,
                {"name": BOOKING_CODE_SEQUENCE, "value": start},
                ["name"],
            )
            self.db.execute(
                update(BookingSequence)
                .where(BookingSequence.name == BOOKING_CODE_SEQUENCE)
                .values(value=BookingSequence.value + 1)
                .execution_options(synchronize_session=False)
            )
            value = self.db.execute(
                select(BookingSequence.value).where(BookingSequence.name == BOOKING_CODE_SEQUENCE)
            ).scalar_one()
        except SQLAlchemyError as e:
            self._raise_store_error("allocate booking code", e)
        return f"{prefix}{value}"
