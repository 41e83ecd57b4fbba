"""Exceptions raised by the package registration services.

Hierarchy:
    PackageServiceError
    ├── InputError
    │   ├── InvalidDestination
    │   ├── InvalidTransportType
    │   ├── InvalidPackageNumber
    │   ├── InvalidStatus
    │   └── InvalidPrice
    ├── CodeAlreadyReserved
    ├── CodeSpaceExhausted
    ├── PackageAlreadyExists
    ├── ReservationNotActive
    ├── InvalidStatusTransition
    └── PackageNotFound
"""


class PackageServiceError(Exception):
    """Base class for all package service errors."""


class InputError(PackageServiceError):
    """Request value rejected before any storage mutation."""


class InvalidDestination(InputError):
    def __init__(self, destination):
        self.destination = destination
        super().__init__(f"Invalid destination: {destination!r}")


class InvalidTransportType(InputError):
    def __init__(self, transport_type):
        self.transport_type = transport_type
        super().__init__(f"Invalid transport type: {transport_type!r}")


class InvalidPackageNumber(InputError):
    """Package number does not carry the prefix of its destination and transport type."""

    def __init__(self, package_number: str, expected_prefix: str):
        self.package_number = package_number
        self.expected_prefix = expected_prefix
        super().__init__(f"Package number {package_number!r} does not match prefix {expected_prefix}")


class InvalidStatus(InputError):
    def __init__(self, status):
        self.status = status
        super().__init__(f"Invalid status: {status!r}")


class InvalidPrice(InputError):
    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r}")


class CodeAlreadyReserved(PackageServiceError):
    """The package number is held by a reservation or a registered package."""

    def __init__(self, package_number: str):
        self.package_number = package_number
        super().__init__(f"Package number {package_number} is already taken")


class CodeSpaceExhausted(PackageServiceError):
    """No free package number was found within the attempt cap."""

    def __init__(self, prefix: str, attempts: int):
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(f"No free package number for prefix {prefix} after {attempts} attempts")


class PackageAlreadyExists(PackageServiceError):
    def __init__(self, package_number: str):
        self.package_number = package_number
        super().__init__(f"Package {package_number} already exists")


class ReservationNotActive(PackageServiceError):
    """Finalization attempted without a live reservation held by the caller."""

    def __init__(self, package_number: str, reason: str):
        self.package_number = package_number
        self.reason = reason
        super().__init__(f"Reservation for {package_number} is not active: {reason}")


class InvalidStatusTransition(PackageServiceError):
    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f"Status change {current} -> {new} is not allowed")


class PackageNotFound(PackageServiceError):
    def __init__(self, package_number: str):
        self.package_number = package_number
        super().__init__(f"Package {package_number} not found")
