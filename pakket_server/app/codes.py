import enum

from .errors import InvalidDestination, InvalidTransportType


class TransportType(str, enum.Enum):
    SEA = "sea"
    AIR = "air"


class Destination(str, enum.Enum):
    SURINAME = "suriname"
    CURACAO = "curacao"
    ARUBA = "aruba"
    BONAIRE = "bonaire"
    ST_MAARTEN = "st_maarten"


# destination -> transport type -> package number prefix
PREFIX_CODES: dict[Destination, dict[TransportType, str]] = {
    Destination.SURINAME: {TransportType.SEA: "KZ", TransportType.AIR: "KL"},
    Destination.CURACAO: {TransportType.SEA: "CZ", TransportType.AIR: "CL"},
    Destination.ARUBA: {TransportType.SEA: "AZ", TransportType.AIR: "AL"},
    Destination.BONAIRE: {TransportType.SEA: "BZ", TransportType.AIR: "BL"},
    Destination.ST_MAARTEN: {TransportType.SEA: "STMZ", TransportType.AIR: "STML"},
}


def parse_destination(value) -> Destination:
    try:
        return Destination(str(value).strip().lower())
    except ValueError:
        raise InvalidDestination(value) from None


def parse_transport_type(value) -> TransportType:
    try:
        return TransportType(str(value).strip().lower())
    except ValueError:
        raise InvalidTransportType(value) from None


def derive_code(destination, transport_type) -> str:
    """Return the prefix code for a destination and transport type, e.g. suriname/air -> 'KL'."""
    return PREFIX_CODES[parse_destination(destination)][parse_transport_type(transport_type)]
