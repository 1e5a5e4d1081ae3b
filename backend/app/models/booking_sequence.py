"""Named counters backing human-readable booking codes."""

from sqlalchemy import BigInteger, Column, String

from app.database import Base


class BookingSequence(Base):
    """Single row per sequence; ``value`` is the last number handed out."""

    __tablename__ = "booking_sequences"

    name = Column(String(50), primary_key=True)
    value = Column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<BookingSequence {self.name}={self.value}>"
