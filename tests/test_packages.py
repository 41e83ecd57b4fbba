from datetime import timedelta

import pytest

from conftest import T0, package_in
from pakket_server.app.config import settings
from pakket_server.app.errors import (
    InvalidDestination,
    InvalidPackageNumber,
    InvalidPrice,
    InvalidStatus,
    InvalidStatusTransition,
    PackageAlreadyExists,
    PackageNotFound,
    ReservationNotActive,
)
from pakket_server.app.models import Package, PackageNumberReservation
from pakket_server.app.numbering import reserve_package_number
from pakket_server.app.packages import (
    finalize_package,
    get_package_by_number,
    list_packages,
    package_statistics,
    set_package_status,
    update_package_price,
)


def _reservation(db, package_number):
    return db.query(PackageNumberReservation).filter_by(package_number=package_number).first()


def test_finalize_consumes_the_reservation(db):
    reserve_package_number(db, "KZ00427", "agent-a", now=T0)

    package = finalize_package(db, package_in("KZ00427"), user_id="agent-a", now=T0 + timedelta(minutes=10))

    assert package.package_number == "KZ00427"
    assert package.status == "aangemeld"
    assert package.user_id == "agent-a"
    assert package.final_price == "45.00"
    assert package.manual_price is None
    assert _reservation(db, "KZ00427") is None


def test_finalize_without_reservation_is_allowed_by_default(db):
    package = finalize_package(db, package_in("CL00001", destination="curacao", transport_type="air"), now=T0)

    assert package.destination == "curacao"
    assert package.transport_type == "air"


def test_finalize_uses_manual_price_when_given(db):
    package = finalize_package(db, package_in("AZ00001", destination="aruba", manual_price="39,95"), now=T0)

    assert package.manual_price == "39,95"
    assert package.final_price == "39,95"


def test_second_finalize_of_same_number_conflicts(db):
    reserve_package_number(db, "KZ00500", "agent-a", now=T0)
    finalize_package(db, package_in("KZ00500"), user_id="agent-a", now=T0)

    with pytest.raises(PackageAlreadyExists) as excinfo:
        finalize_package(db, package_in("KZ00500", receiver_first_name="Other"), user_id="agent-b", now=T0)

    assert excinfo.value.package_number == "KZ00500"
    assert db.query(Package).count() == 1
    assert get_package_by_number(db, "KZ00500").receiver_first_name == "Ravi"


def test_failed_finalize_keeps_a_concurrent_reservation(db):
    finalize_package(db, package_in("KZ00600"), now=T0)
    # a stray reservation row for the same number (written outside the allocation flow)
    db.add(PackageNumberReservation(package_number="KZ00600", user_id="agent-b",
                                    expires_at=T0 + timedelta(minutes=30), created_at=T0))
    db.commit()

    with pytest.raises(PackageAlreadyExists):
        finalize_package(db, package_in("KZ00600"), now=T0)
    assert _reservation(db, "KZ00600") is not None


def test_finalize_rejects_unknown_destination_before_writing(db):
    reserve_package_number(db, "KZ00001", "agent-a", now=T0)

    with pytest.raises(InvalidDestination):
        finalize_package(db, package_in("KZ00001", destination="madeira"), now=T0)
    assert _reservation(db, "KZ00001") is not None
    assert db.query(Package).count() == 0


def test_finalize_rejects_number_from_another_route(db):
    reserve_package_number(db, "KZ00801", "agent-a", now=T0)

    with pytest.raises(InvalidPackageNumber) as excinfo:
        finalize_package(db, package_in("KZ00801", destination="aruba", transport_type="air"), now=T0)

    assert excinfo.value.expected_prefix == "AL"
    assert _reservation(db, "KZ00801") is not None
    assert db.query(Package).count() == 0


@pytest.mark.parametrize("package_number", ["KZ0080", "KZ008011", "KZ0080A", "STMZ00801"])
def test_finalize_rejects_malformed_numbers(db, package_number):
    with pytest.raises(InvalidPackageNumber):
        finalize_package(db, package_in(package_number), now=T0)
    assert db.query(Package).count() == 0


class TestReservationLiveness:
    @pytest.fixture(autouse=True)
    def enforce(self, monkeypatch):
        monkeypatch.setattr(settings, "enforce_reservation_liveness", True)

    def test_live_reservation_of_same_user_is_accepted(self, db):
        reserve_package_number(db, "KZ00701", "agent-a", now=T0)

        package = finalize_package(db, package_in("KZ00701"), user_id="agent-a", now=T0 + timedelta(minutes=29))

        assert package.status == "aangemeld"

    def test_missing_reservation_is_rejected(self, db):
        with pytest.raises(ReservationNotActive) as excinfo:
            finalize_package(db, package_in("KZ00702"), user_id="agent-a", now=T0)
        assert excinfo.value.reason == "no reservation"

    def test_expired_reservation_is_rejected(self, db):
        reserve_package_number(db, "KZ00703", "agent-a", now=T0)

        with pytest.raises(ReservationNotActive) as excinfo:
            finalize_package(db, package_in("KZ00703"), user_id="agent-a", now=T0 + timedelta(minutes=30))
        assert excinfo.value.reason == "reservation expired"
        assert db.query(Package).count() == 0

    def test_reservation_of_other_user_is_rejected(self, db):
        reserve_package_number(db, "KZ00704", "agent-a", now=T0)

        with pytest.raises(ReservationNotActive):
            finalize_package(db, package_in("KZ00704"), user_id="agent-b", now=T0)

    def test_existing_package_is_reported_as_conflict(self, db):
        reserve_package_number(db, "KZ00705", "agent-a", now=T0)
        finalize_package(db, package_in("KZ00705"), user_id="agent-a", now=T0)

        with pytest.raises(PackageAlreadyExists):
            finalize_package(db, package_in("KZ00705"), user_id="agent-a", now=T0)


def test_status_moves_freely_by_default(db):
    finalize_package(db, package_in("KZ00010"), now=T0)
    later = T0 + timedelta(days=3)

    package = set_package_status(db, "KZ00010", "afgeleverd", now=later)
    assert package.status == "afgeleverd"
    assert package.updated_at == later

    package = set_package_status(db, "KZ00010", "vertrokken", now=later)
    assert package.status == "vertrokken"
    assert package.package_number == "KZ00010"
    assert package.final_price == "45.00"


def test_status_rejects_values_outside_the_lifecycle(db):
    finalize_package(db, package_in("KZ00011"), now=T0)

    with pytest.raises(InvalidStatus):
        set_package_status(db, "KZ00011", "verloren")
    assert get_package_by_number(db, "KZ00011").status == "aangemeld"


def test_status_of_unknown_package(db):
    with pytest.raises(PackageNotFound):
        set_package_status(db, "KZ99999", "vertrokken")


def test_forward_policy_blocks_skipping_steps(db, monkeypatch):
    monkeypatch.setattr(settings, "status_policy", "forward")
    finalize_package(db, package_in("KZ00012"), now=T0)

    with pytest.raises(InvalidStatusTransition):
        set_package_status(db, "KZ00012", "afgeleverd")
    assert set_package_status(db, "KZ00012", "vertrokken").status == "vertrokken"


def test_price_correction_recomputes_final_price(db):
    finalize_package(db, package_in("KZ00020"), now=T0)

    package = update_package_price(db, "KZ00020", "50.00")
    assert package.final_price == "50.00"

    package = update_package_price(db, "KZ00020", None)
    assert package.manual_price is None
    assert package.final_price == "45.00"


def test_price_correction_rejects_non_numbers(db):
    finalize_package(db, package_in("KZ00021"), now=T0)

    with pytest.raises(InvalidPrice):
        update_package_price(db, "KZ00021", "gratis")


def test_list_packages_filters_by_user(db):
    finalize_package(db, package_in("KZ00030"), user_id="agent-a", now=T0)
    finalize_package(db, package_in("KZ00031"), user_id="agent-b", now=T0 + timedelta(minutes=1))
    finalize_package(db, package_in("KZ00032"), user_id="agent-a", now=T0 + timedelta(minutes=2))

    assert [p.package_number for p in list_packages(db)] == ["KZ00032", "KZ00031", "KZ00030"]
    assert [p.package_number for p in list_packages(db, user_id="agent-a")] == ["KZ00032", "KZ00030"]


def test_statistics_count_per_transport_and_status(db):
    finalize_package(db, package_in("KZ00040"), now=T0)
    finalize_package(db, package_in("KZ00041"), now=T0)
    finalize_package(db, package_in("KL00042", transport_type="air"), now=T0)
    set_package_status(db, "KZ00041", "vertrokken")

    stats = package_statistics(db)

    assert stats["sea"] == {"aangemeld": 1, "vertrokken": 1, "aangekomen": 0, "afgeleverd": 0, "total": 2}
    assert stats["air"]["aangemeld"] == 1
    assert stats["air"]["total"] == 1
