# pakket_server/app/models.py
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from sqlalchemy.sql import func
from .db import Base
from .utils import utcnow


# Registered package; package_number is its permanent identity
class Package(Base):
    __tablename__ = "packages"
    id = Column(Integer, primary_key=True)
    package_number = Column(String, unique=True, index=True, nullable=False)
    transport_type = Column(String, index=True, nullable=False)  # 'sea' | 'air'
    destination = Column(String, index=True, nullable=False)
    weight = Column(String, nullable=False)
    calculated_price = Column(String, nullable=False)
    manual_price = Column(String, nullable=True)
    final_price = Column(String, nullable=False)

    package_content = Column(String, nullable=True)
    package_value = Column(String, nullable=True)

    payment_cash = Column(Boolean, nullable=False, default=False)
    payment_pin = Column(Boolean, nullable=False, default=False)
    payment_account = Column(Boolean, nullable=False, default=False)

    sender_first_name = Column(String, nullable=False)
    sender_last_name = Column(String, nullable=False)
    sender_address = Column(String, nullable=False)
    sender_city = Column(String, nullable=False)
    sender_country = Column(String, nullable=True)
    sender_phone = Column(String, nullable=True)
    sender_mobile = Column(String, nullable=False)
    sender_email = Column(String, nullable=True)

    receiver_first_name = Column(String, nullable=False)
    receiver_last_name = Column(String, nullable=False)
    receiver_address = Column(String, nullable=False)
    receiver_city = Column(String, nullable=False)
    receiver_country = Column(String, nullable=True)
    receiver_phone = Column(String, nullable=True)
    receiver_mobile = Column(String, nullable=False)
    receiver_email = Column(String, nullable=True)

    user_id = Column(String, index=True, nullable=True)
    status = Column(String, nullable=False, default="aangemeld")
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    def __repr__(self):
        return f"<Package(number={self.package_number}, status={self.status})>"


# Soft hold on a package number while the registration form is filled in
class PackageNumberReservation(Base):
    __tablename__ = "package_number_reservations"
    id = Column(Integer, primary_key=True)
    package_number = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, nullable=True)
    expires_at = Column(DateTime, index=True, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    def is_live(self, now) -> bool:
        return now < self.expires_at

    def __repr__(self):
        return f"<PackageNumberReservation(number={self.package_number}, expires_at={self.expires_at})>"


# Audit trail of agent actions
class UserLog(Base):
    __tablename__ = "user_logs"
    id = Column(Integer, primary_key=True)
    user_id = Column(String, index=True, nullable=True)
    action = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
