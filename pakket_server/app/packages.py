import logging
import re
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .codes import PREFIX_CODES, TransportType, parse_destination, parse_transport_type
from .config import settings
from .errors import (
    InvalidPackageNumber,
    InvalidPrice,
    PackageAlreadyExists,
    PackageNotFound,
    ReservationNotActive,
)
from .models import Package, PackageNumberReservation
from .schemas import PackageIn
from .status import INITIAL_STATUS, PackageStatus, check_transition, parse_status
from .utils import SUFFIX_DIGITS, parse_decimal, utcnow

logger = logging.getLogger(__name__)


def final_price_for(calculated_price: str, manual_price: str | None) -> str:
    return manual_price if manual_price else calculated_price


def _check_reservation(db: Session, package_number: str, user_id: str | None, now: datetime) -> None:
    reservation = (
        db.query(PackageNumberReservation)
        .filter(PackageNumberReservation.package_number == package_number)
        .first()
    )
    if reservation is None:
        raise ReservationNotActive(package_number, "no reservation")
    if not reservation.is_live(now):
        raise ReservationNotActive(package_number, "reservation expired")
    if reservation.user_id != user_id:
        raise ReservationNotActive(package_number, "reserved by another user")


def finalize_package(db: Session, data: PackageIn, user_id: str | None = None,
                     now: datetime | None = None, enforce_liveness: bool | None = None) -> Package:
    """
    Turn a reserved package number into a registered package.

    The reservation delete and the package insert are committed together; a
    duplicate package number rolls both back and raises PackageAlreadyExists.
    """
    destination = parse_destination(data.destination)
    transport_type = parse_transport_type(data.transport_type)
    prefix = PREFIX_CODES[destination][transport_type]
    if not re.fullmatch(rf"{prefix}\d{{{SUFFIX_DIGITS}}}", data.package_number):
        raise InvalidPackageNumber(data.package_number, prefix)
    if now is None:
        now = utcnow()
    if enforce_liveness is None:
        enforce_liveness = settings.enforce_reservation_liveness

    package_number = data.package_number
    if enforce_liveness:
        if get_package_or_none(db, package_number) is not None:
            raise PackageAlreadyExists(package_number)
        _check_reservation(db, package_number, user_id, now)

    fields = data.model_dump(exclude={"destination", "transport_type"})
    package = Package(
        **fields,
        destination=destination.value,
        transport_type=transport_type.value,
        final_price=final_price_for(data.calculated_price, data.manual_price),
        user_id=user_id,
        status=INITIAL_STATUS.value,
        created_at=now,
        updated_at=now,
    )

    # absence of a reservation is fine: it may already have been swept
    (db.query(PackageNumberReservation)
     .filter(PackageNumberReservation.package_number == package_number)
     .delete(synchronize_session=False))
    db.add(package)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("package %s already exists, registration rejected", package_number)
        raise PackageAlreadyExists(package_number) from None
    db.refresh(package)
    logger.info("registered package %s (%s/%s) for user %s",
                package_number, destination.value, transport_type.value, user_id)
    return package


def get_package_or_none(db: Session, package_number: str) -> Package | None:
    return db.query(Package).filter(Package.package_number == package_number).first()


def get_package_by_number(db: Session, package_number: str) -> Package:
    package = get_package_or_none(db, package_number)
    if package is None:
        raise PackageNotFound(package_number)
    return package


def list_packages(db: Session, user_id: str | None = None, limit: int = 200) -> list[Package]:
    q = db.query(Package)
    if user_id:
        q = q.filter(Package.user_id == user_id)
    return q.order_by(Package.created_at.desc(), Package.id.desc()).limit(limit).all()


def set_package_status(db: Session, package_number: str, new_status, now: datetime | None = None,
                       policy: str | None = None) -> Package:
    status = parse_status(new_status)
    package = get_package_by_number(db, package_number)
    status = check_transition(package.status, status, policy or settings.status_policy)

    previous = package.status
    package.status = status.value
    package.updated_at = now or utcnow()
    db.commit()
    db.refresh(package)
    logger.info("package %s status %s -> %s", package_number, previous, status.value)
    return package


def update_package_price(db: Session, package_number: str, manual_price: str | None,
                         now: datetime | None = None) -> Package:
    """Set or clear the manual price override and recompute the final price."""
    if manual_price is not None and str(manual_price).strip() == "":
        manual_price = None
    if manual_price is not None and parse_decimal(manual_price) is None:
        raise InvalidPrice("manual_price", manual_price)

    package = get_package_by_number(db, package_number)
    package.manual_price = manual_price
    package.final_price = final_price_for(package.calculated_price, manual_price)
    package.updated_at = now or utcnow()
    db.commit()
    db.refresh(package)
    logger.info("package %s final price set to %s", package_number, package.final_price)
    return package


def package_statistics(db: Session) -> dict:
    """Package counts per transport type and status."""
    stats = {
        transport.value: {**{s.value: 0 for s in PackageStatus}, "total": 0}
        for transport in TransportType
    }
    rows = (
        db.query(Package.transport_type, Package.status, func.count(Package.id))
        .group_by(Package.transport_type, Package.status)
        .all()
    )
    for transport_type, status, count in rows:
        bucket = stats.get(transport_type)
        if bucket is None or status not in bucket:
            continue
        bucket[status] = count
        bucket["total"] += count
    return stats
