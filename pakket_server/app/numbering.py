"""
Package number allocation.

A package number is a prefix derived from destination and transport type
followed by five random digits (KZ00427). Numbers are handed out in two steps:
a free candidate is drawn and checked against packages and reservations, then
a reservation row holds it for ``settings.reservation_minutes``. The UNIQUE
constraint on ``package_number_reservations.package_number`` settles races
between agents drawing the same candidate; the loser draws again.
"""
import enum
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .codes import derive_code
from .config import settings
from .errors import CodeAlreadyReserved, CodeSpaceExhausted
from .models import Package, PackageNumberReservation
from .utils import SUFFIX_SPACE, format_package_number, utcnow

logger = logging.getLogger(__name__)


class AttemptOutcome(enum.Enum):
    RESERVED = "reserved"
    CONFLICT = "conflict"


@dataclass
class ReservationAttempt:
    package_number: str
    outcome: AttemptOutcome
    reservation: PackageNumberReservation | None = None


def is_number_taken(db: Session, package_number: str) -> bool:
    """True when a package or a reservation (expired or not) holds the number."""
    if db.query(Package.id).filter(Package.package_number == package_number).first() is not None:
        return True
    return (
        db.query(PackageNumberReservation.id)
        .filter(PackageNumberReservation.package_number == package_number)
        .first()
        is not None
    )


def generate_package_number(db: Session, destination, transport_type, rng=None,
                            max_attempts: int | None = None) -> str:
    """
    Draw random candidates until one is free in both tables.
    The number is not reserved; a concurrent caller may still take it.
    """
    prefix = derive_code(destination, transport_type)
    rng = rng or random
    max_attempts = max_attempts or settings.max_generation_attempts

    for _ in range(max_attempts):
        candidate = format_package_number(prefix, rng.randrange(SUFFIX_SPACE))
        if not is_number_taken(db, candidate):
            return candidate
        logger.debug("package number %s already taken, drawing again", candidate)

    logger.error("no free package number for prefix %s after %d draws", prefix, max_attempts)
    raise CodeSpaceExhausted(prefix, max_attempts)


def release_expired_reservations(db: Session, now: datetime | None = None) -> int:
    """Delete reservations whose expiry lies in the past. Returns the number removed."""
    if now is None:
        now = utcnow()
    released = (
        db.query(PackageNumberReservation)
        .filter(PackageNumberReservation.expires_at < now)
        .delete(synchronize_session=False)
    )
    db.commit()
    if released:
        logger.info("released %d expired package number reservation(s)", released)
    return released


def try_reserve(db: Session, package_number: str, user_id: str | None = None,
                now: datetime | None = None) -> ReservationAttempt:
    """
    Insert a reservation for ``package_number`` without sweeping first.
    Conflicts are reported in the result rather than raised.
    """
    if now is None:
        now = utcnow()

    if db.query(Package.id).filter(Package.package_number == package_number).first() is not None:
        return ReservationAttempt(package_number, AttemptOutcome.CONFLICT)

    reservation = PackageNumberReservation(
        package_number=package_number,
        user_id=user_id,
        expires_at=now + timedelta(minutes=settings.reservation_minutes),
        created_at=now,
    )
    db.add(reservation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return ReservationAttempt(package_number, AttemptOutcome.CONFLICT)
    db.refresh(reservation)
    return ReservationAttempt(package_number, AttemptOutcome.RESERVED, reservation)


def reserve_package_number(db: Session, package_number: str, user_id: str | None = None,
                           now: datetime | None = None) -> PackageNumberReservation:
    """Sweep expired reservations, then hold ``package_number`` for the caller."""
    if now is None:
        now = utcnow()
    release_expired_reservations(db, now=now)
    attempt = try_reserve(db, package_number, user_id, now=now)
    if attempt.outcome is AttemptOutcome.CONFLICT:
        raise CodeAlreadyReserved(package_number)
    logger.info("reserved package number %s for user %s until %s",
                package_number, user_id, attempt.reservation.expires_at)
    return attempt.reservation


def generate_and_reserve(db: Session, destination, transport_type, user_id: str | None = None,
                         now: datetime | None = None, rng=None) -> PackageNumberReservation:
    """
    Produce a fresh package number and reserve it.

    A reservation conflict means another agent took the same candidate between
    the check and the insert; generation starts over with a new draw.
    """
    prefix = derive_code(destination, transport_type)
    if now is None:
        now = utcnow()
    attempts = settings.max_reservation_attempts

    for attempt_no in range(1, attempts + 1):
        release_expired_reservations(db, now=now)
        package_number = generate_package_number(db, destination, transport_type, rng=rng)
        attempt = try_reserve(db, package_number, user_id, now=now)
        if attempt.outcome is AttemptOutcome.RESERVED:
            logger.info("reserved package number %s for user %s until %s",
                        package_number, user_id, attempt.reservation.expires_at)
            return attempt.reservation
        logger.warning("package number %s was taken concurrently (attempt %d/%d)",
                       package_number, attempt_no, attempts)

    logger.error("could not reserve a package number for prefix %s after %d attempts", prefix, attempts)
    raise CodeSpaceExhausted(prefix, attempts)
