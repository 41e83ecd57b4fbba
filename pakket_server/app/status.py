"""
Package status lifecycle.

    aangemeld -> vertrokken -> aangekomen -> afgeleverd
    (registered)  (departed)   (arrived)     (delivered)

The default 'free' policy lets staff correct a status in any direction.
The 'forward' policy only accepts the next step of the lifecycle.
"""
import enum

from .errors import InvalidStatus, InvalidStatusTransition


class PackageStatus(str, enum.Enum):
    AANGEMELD = "aangemeld"
    VERTROKKEN = "vertrokken"
    AANGEKOMEN = "aangekomen"
    AFGELEVERD = "afgeleverd"


INITIAL_STATUS = PackageStatus.AANGEMELD
STATUS_FLOW = list(PackageStatus)

FORWARD_TRANSITIONS = {
    current: next_status for current, next_status in zip(STATUS_FLOW, STATUS_FLOW[1:])
}


def parse_status(value) -> PackageStatus:
    if isinstance(value, PackageStatus):
        return value
    try:
        return PackageStatus(value)
    except ValueError:
        raise InvalidStatus(value) from None


def check_transition(current, new, policy: str = "free") -> PackageStatus:
    new_status = parse_status(new)
    if policy == "free":
        return new_status
    if policy != "forward":
        raise ValueError(f"unknown status policy: {policy!r}")
    current_status = parse_status(current)
    if FORWARD_TRANSITIONS.get(current_status) != new_status:
        raise InvalidStatusTransition(current_status.value, new_status.value)
    return new_status
