# pakket_server/app/api.py
import csv
import io
import logging
from typing import List, Optional

import pandas as pd
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db, init_db
from .errors import (
    CodeAlreadyReserved,
    CodeSpaceExhausted,
    InputError,
    InvalidStatusTransition,
    PackageAlreadyExists,
    PackageNotFound,
    PackageServiceError,
    ReservationNotActive,
)
from .models import UserLog
from .numbering import generate_and_reserve, release_expired_reservations
from .packages import (
    finalize_package,
    get_package_by_number,
    list_packages,
    package_statistics,
    set_package_status,
    update_package_price,
)
from .schemas import PackageIn, PackageNumberOut, PackageNumberRequest, PackageOut, PriceUpdate, StatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_FIELDS = [
    "package_number", "transport_type", "destination", "status", "weight",
    "calculated_price", "manual_price", "final_price",
    "sender_first_name", "sender_last_name", "sender_city", "sender_mobile",
    "receiver_first_name", "receiver_last_name", "receiver_city", "receiver_mobile",
    "user_id", "created_at", "updated_at",
]


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    # identity is established by the auth layer in front of this service
    return x_user_id


def _http_error(exc: PackageServiceError) -> HTTPException:
    if isinstance(exc, InputError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, PackageNotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (PackageAlreadyExists, ReservationNotActive, InvalidStatusTransition, CodeAlreadyReserved)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, CodeSpaceExhausted):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))


def _audit(db: Session, user_id: Optional[str], action: str, description: str) -> None:
    # best-effort: a failed audit write never fails the request
    try:
        db.add(UserLog(user_id=user_id, action=action, description=description))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("audit log write failed for action %s", action, exc_info=True)


@router.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------
# Package numbers: generate + reserve
# ---------------------------
@router.post("/package-numbers", response_model=PackageNumberOut)
def create_package_number(req: PackageNumberRequest, db: Session = Depends(get_db),
                          user_id: Optional[str] = Depends(current_user_id)):
    try:
        reservation = generate_and_reserve(db, req.destination, req.transport_type, user_id=user_id)
    except PackageServiceError as exc:
        raise _http_error(exc) from exc
    out = PackageNumberOut(package_number=reservation.package_number, expires_at=reservation.expires_at)

    _audit(db, user_id, "generate_package_number",
           f"Pakketnummer {out.package_number} gegenereerd voor {req.destination} ({req.transport_type})")
    return out


@router.post("/package-numbers/release-expired")
def release_expired(db: Session = Depends(get_db)):
    return {"released": release_expired_reservations(db)}


# ---------------------------
# Packages
# ---------------------------
@router.post("/packages", response_model=PackageOut, status_code=status.HTTP_201_CREATED)
def create_package(p: PackageIn, db: Session = Depends(get_db),
                   user_id: Optional[str] = Depends(current_user_id)):
    try:
        package = finalize_package(db, p, user_id=user_id)
    except PackageServiceError as exc:
        raise _http_error(exc) from exc
    out = PackageOut.model_validate(package)

    _audit(db, user_id, "register_package",
           f"Pakket {out.package_number} geregistreerd voor {p.receiver_first_name} {p.receiver_last_name}")
    return out


@router.get("/packages", response_model=List[PackageOut])
def get_packages(mine: bool = False, limit: int = Query(default=200, ge=1, le=1000),
                 db: Session = Depends(get_db), user_id: Optional[str] = Depends(current_user_id)):
    return list_packages(db, user_id=user_id if mine else None, limit=limit)


@router.get("/packages/{package_number}", response_model=PackageOut)
def get_package(package_number: str, db: Session = Depends(get_db)):
    try:
        return get_package_by_number(db, package_number)
    except PackageServiceError as exc:
        raise _http_error(exc) from exc


@router.patch("/packages/{package_number}/status", response_model=PackageOut)
def patch_package_status(package_number: str, body: StatusUpdate, db: Session = Depends(get_db),
                         user_id: Optional[str] = Depends(current_user_id)):
    try:
        package = set_package_status(db, package_number, body.status)
    except PackageServiceError as exc:
        raise _http_error(exc) from exc
    out = PackageOut.model_validate(package)

    _audit(db, user_id, "update_package_status",
           f"Status van pakket {package_number} gewijzigd naar {out.status}")
    return out


@router.patch("/packages/{package_number}/price", response_model=PackageOut)
def patch_package_price(package_number: str, body: PriceUpdate, db: Session = Depends(get_db),
                        user_id: Optional[str] = Depends(current_user_id)):
    try:
        package = update_package_price(db, package_number, body.manual_price)
    except PackageServiceError as exc:
        raise _http_error(exc) from exc
    out = PackageOut.model_validate(package)

    _audit(db, user_id, "update_package_price",
           f"Prijs van pakket {package_number} gewijzigd naar {out.final_price}")
    return out


@router.get("/package-statistics")
def get_package_statistics(db: Session = Depends(get_db)):
    return package_statistics(db)


# ---------------------------
# Reports: export
# ---------------------------
@router.get("/reports/export")
def export_report(fmt: str = Query("csv", pattern="^(csv|xlsx)$"), db: Session = Depends(get_db)):
    rows = []
    for p in list_packages(db, limit=100000):
        row = {name: getattr(p, name) for name in EXPORT_FIELDS}
        row["created_at"] = p.created_at.isoformat() if p.created_at else None
        row["updated_at"] = p.updated_at.isoformat() if p.updated_at else None
        rows.append(row)

    if fmt == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        writer.writerows(rows)
        return Response(content=buffer.getvalue(), media_type="text/csv",
                        headers={"Content-Disposition": 'attachment; filename="packages.csv"'})

    df = pd.DataFrame(rows, columns=EXPORT_FIELDS)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="packages")
    buffer.seek(0)
    return Response(content=buffer.read(),
                    media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                    headers={"Content-Disposition": 'attachment; filename="packages.xlsx"'})


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name)

    # Startup: init DB
    @app.on_event("startup")
    def on_startup():
        init_db()

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
