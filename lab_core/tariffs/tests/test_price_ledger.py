# lab_core/tariffs/tests/test_price_ledger.py
import threading
from decimal import Decimal
from unittest import mock
from uuid import uuid4

import pytest
from django.db import IntegrityError, connection, transaction
from rest_framework.exceptions import NotFound, ValidationError

from lab_core.audit.models import AuditEvent
from lab_core.common.api.exceptions import ConflictError
from lab_core.tariffs.models import PriceEntry
from lab_core.tariffs.selectors import list_prices, price_matrix, tariff_stats
from lab_core.tariffs.services import PriceLedgerService

pytestmark = pytest.mark.django_db


def test_set_price_twice_keeps_one_row_and_same_id(make_tariff, make_exam):
    tariff = make_tariff("Clinic A")
    exam = make_exam()

    first = PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price="10.00")
    second = PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price="10.00")

    assert PriceEntry.objects.filter(tariff=tariff, exam=exam).count() == 1
    assert first.id == second.id
    assert second.price == Decimal("10.00")


def test_set_price_overwrites_in_place(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()

    created = PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price=Decimal("10.00"))
    updated = PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price=Decimal("12.50"))

    assert updated.id == created.id
    assert updated.price == Decimal("12.50")
    assert updated.created_at == created.created_at
    assert PriceEntry.objects.get(id=created.id).price == Decimal("12.50")


def test_set_price_rounds_half_up_to_cents(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()

    entry = PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price="45.505")

    assert entry.price == Decimal("45.51")


@pytest.mark.parametrize("bad", ["-0.01", "abc", None, "NaN", "Infinity", True])
def test_set_price_rejects_invalid_values(make_tariff, make_exam, bad):
    tariff = make_tariff()
    exam = make_exam()

    with pytest.raises(ValidationError):
        PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price=bad)

    assert PriceEntry.objects.count() == 0


def test_set_price_zero_is_allowed(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()

    entry = PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price=0)

    assert entry.price == Decimal("0.00")


def test_set_price_unknown_tariff_or_exam_is_not_found(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()

    with pytest.raises(NotFound):
        PriceLedgerService.set_price(tariff_id=uuid4(), exam_id=exam.id, price="1.00")
    with pytest.raises(NotFound):
        PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id + 999, price="1.00")
    with pytest.raises(NotFound):
        PriceLedgerService.set_price(tariff_id="not-a-uuid", exam_id=exam.id, price="1.00")


def test_set_price_writes_audit_event(make_tariff, make_exam, admin_user):
    tariff = make_tariff()
    exam = make_exam()

    entry = PriceLedgerService.set_price(
        tariff_id=tariff.id,
        exam_id=exam.id,
        price="20.00",
        actor_user_id=admin_user.pk,
    )

    ev = AuditEvent.objects.get(event_code="price.set")
    assert ev.entity_id == str(entry.id)
    assert ev.actor_user_id == str(admin_user.pk)
    assert ev.metadata["price"] == "20.00"


def test_unique_constraint_rejects_direct_duplicate(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()
    PriceEntry.objects.create(tariff=tariff, exam=exam, price=Decimal("1.00"))

    with pytest.raises(IntegrityError):
        with transaction.atomic():
            PriceEntry.objects.create(tariff=tariff, exam=exam, price=Decimal("2.00"))


def test_upsert_retries_once_then_succeeds(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()
    real_bulk_create = PriceEntry.objects.bulk_create
    calls = {"n": 0}

    def flaky(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise IntegrityError("simulated race")
        return real_bulk_create(*args, **kwargs)

    with mock.patch.object(PriceEntry.objects, "bulk_create", side_effect=flaky):
        entry = PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price="5.00")

    assert calls["n"] == 2
    assert entry.price == Decimal("5.00")


def test_upsert_reports_conflict_after_second_failure(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()

    with mock.patch.object(PriceEntry.objects, "bulk_create", side_effect=IntegrityError("race")) as m:
        with pytest.raises(ConflictError):
            PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price="5.00")

    assert m.call_count == 2
    assert PriceEntry.objects.count() == 0


def test_delete_price_is_idempotent(make_tariff, make_exam, price):
    tariff = make_tariff()
    exam = make_exam()
    price(tariff, exam, "9.90")

    assert PriceLedgerService.delete_price(tariff_id=tariff.id, exam_id=exam.id) is True
    assert PriceLedgerService.delete_price(tariff_id=tariff.id, exam_id=exam.id) is False
    assert PriceEntry.objects.count() == 0
    assert AuditEvent.objects.filter(event_code="price.deleted").count() == 1


def test_list_prices_for_one_tariff_and_for_all(make_tariff, make_exam, price):
    t1 = make_tariff("T1")
    t2 = make_tariff("T2")
    e1 = make_exam("A")
    e2 = make_exam("B")
    price(t1, e1, "1.00")
    price(t1, e2, "2.00")
    price(t2, e1, "3.00")

    assert list_prices(tariff_id=t1.id).count() == 2
    assert list_prices(tariff_id=t2.id).count() == 1
    assert list_prices().count() == 3

    with pytest.raises(NotFound):
        list(list_prices(tariff_id=uuid4()))


def test_tariff_stats_counts_and_averages(make_tariff, make_exam, price):
    tariff = make_tariff()
    empty = make_tariff("Empty")
    price(tariff, make_exam("A"), "10.00")
    price(tariff, make_exam("B"), "15.02")

    stats = tariff_stats(tariff_id=tariff.id)
    assert stats.exam_count == 2
    assert stats.avg_price == Decimal("12.51")

    none = tariff_stats(tariff_id=empty.id)
    assert none.exam_count == 0
    assert none.avg_price is None


def test_set_prices_bulk_upserts_and_last_duplicate_wins(make_tariff, make_exam, price):
    t1 = make_tariff("T1")
    t2 = make_tariff("T2")
    e1 = make_exam("A")
    e2 = make_exam("B")
    existing = price(t1, e1, "1.00")

    out = PriceLedgerService.set_prices(
        items=[
            {"tariff_id": t1.id, "exam_id": e1.id, "price": "7.00"},
            {"tariff_id": str(t2.id), "exam_id": e2.id, "price": "8.00"},
            {"tariff_id": t2.id, "exam_id": e2.id, "price": "8.50"},
        ]
    )

    assert len(out) == 2
    assert PriceEntry.objects.count() == 2
    assert PriceEntry.objects.get(id=existing.id).price == Decimal("7.00")
    assert PriceEntry.objects.get(tariff=t2, exam=e2).price == Decimal("8.50")


def test_set_prices_is_all_or_nothing(make_tariff, make_exam):
    tariff = make_tariff()
    exam = make_exam()

    with pytest.raises(ValidationError):
        PriceLedgerService.set_prices(
            items=[
                {"tariff_id": tariff.id, "exam_id": exam.id, "price": "5.00"},
                {"tariff_id": tariff.id, "exam_id": exam.id, "price": "-1"},
            ]
        )
    with pytest.raises(NotFound):
        PriceLedgerService.set_prices(
            items=[
                {"tariff_id": tariff.id, "exam_id": exam.id, "price": "5.00"},
                {"tariff_id": uuid4(), "exam_id": exam.id, "price": "5.00"},
            ]
        )

    assert PriceEntry.objects.count() == 0


def test_copy_prices_multiplies_and_rounds(make_tariff, make_exam, price):
    source = make_tariff("Base")
    target = make_tariff("Médicos")
    e1 = make_exam("A")
    e2 = make_exam("B")
    price(source, e1, "10.00")
    price(source, e2, "33.33")
    price(target, e1, "99.00")

    copied = PriceLedgerService.copy_prices(source_tariff_id=source.id, target_tariff_id=target.id, multiplier="0.85")

    assert copied == 2
    assert PriceEntry.objects.get(tariff=target, exam=e1).price == Decimal("8.50")
    # 33.33 * 0.85 = 28.3305
    assert PriceEntry.objects.get(tariff=target, exam=e2).price == Decimal("28.33")
    assert PriceEntry.objects.filter(tariff=target).count() == 2


def test_copy_prices_to_same_tariff_is_rejected(make_tariff):
    tariff = make_tariff()

    with pytest.raises(ValidationError):
        PriceLedgerService.copy_prices(source_tariff_id=tariff.id, target_tariff_id=tariff.id)


def test_price_matrix_keys_prices_by_tariff(make_tariff, make_exam, price):
    t1 = make_tariff("T1")
    t2 = make_tariff("T2")
    e1 = make_exam("A", category="X")
    e2 = make_exam("B", category="X")
    price(t1, e1, "1.00")
    price(t2, e1, "2.00")

    rows = price_matrix()
    by_exam = {r.exam_id: r for r in rows}

    assert [r.exam_id for r in rows] == [e1.id, e2.id]
    assert by_exam[e1.id].prices == {t1.id: Decimal("1.00"), t2.id: Decimal("2.00")}
    assert by_exam[e2.id].prices == {}

    only_t2 = {r.exam_id: r.prices for r in price_matrix(tariff_id=t2.id)}
    assert only_t2[e1.id] == {t2.id: Decimal("2.00")}


@pytest.mark.postgres
@pytest.mark.django_db(transaction=True)
def test_concurrent_first_time_sets_leave_one_row(make_tariff, make_exam):
    if connection.vendor != "postgresql":
        pytest.skip("needs config.settings.test_postgres")

    tariff = make_tariff()
    exam = make_exam()
    errors = []

    def writer(amount):
        try:
            PriceLedgerService.set_price(tariff_id=tariff.id, exam_id=exam.id, price=amount)
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=writer, args=(f"{10 + i}.00",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert PriceEntry.objects.filter(tariff=tariff, exam=exam).count() == 1
