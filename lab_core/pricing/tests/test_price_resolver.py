# lab_core/pricing/tests/test_price_resolver.py
from decimal import Decimal

import pytest
from django.db import OperationalError
from rest_framework.exceptions import ValidationError

from lab_core.pricing.context import CallerContext, Deadline
from lab_core.pricing.resolvers import PriceResolver
from lab_core.pricing.results import NotFound, PriceQuote, Unavailable, UnavailableReason
from lab_core.pricing.tests.fakes import InMemoryPricingRepository


@pytest.fixture
def repo():
    return InMemoryPricingRepository()


@pytest.fixture
def resolver(repo):
    return PriceResolver(repo)


def test_member_gets_reference_tariff_price(repo, resolver):
    clinic = repo.add_tariff("Clinic A", taxable=True)
    exam = repo.add_exam(1)
    repo.set_price(clinic, exam, "45.50")
    ctx = CallerContext.member("u1", [repo.reference("R1", clinic)])

    result = resolver.resolve_price(exam, ctx)

    assert isinstance(result, PriceQuote)
    assert result.price == Decimal("45.50")
    assert result.tariff_name == "Clinic A"
    assert result.is_taxable is True
    assert result.has_special_pricing is True
    assert result.reference_name == "R1"


def test_first_qualifying_membership_wins_not_cheapest(repo, resolver):
    expensive = repo.add_tariff("Expensive")
    cheap = repo.add_tariff("Cheap")
    exam = repo.add_exam(1)
    repo.set_price(expensive, exam, "100.00")
    repo.set_price(cheap, exam, "1.00")

    first = CallerContext.member("u1", [repo.reference("A", expensive), repo.reference("B", cheap)])
    flipped = CallerContext.member("u1", [repo.reference("B", cheap), repo.reference("A", expensive)])

    assert resolver.resolve_price(exam, first).tariff_name == "Expensive"
    assert resolver.resolve_price(exam, flipped).tariff_name == "Cheap"


def test_inactive_reference_and_disabled_tariff_are_skipped(repo, resolver):
    disabled = repo.add_tariff("Disabled", enabled=False)
    suspended = repo.add_tariff("Suspended")
    good = repo.add_tariff("Good")
    exam = repo.add_exam(1)
    for t in (disabled, suspended, good):
        repo.set_price(t, exam, "10.00")

    ctx = CallerContext.member(
        "u1",
        [
            repo.reference("No tariff"),
            repo.reference("Off", disabled),
            repo.reference("Inactive", suspended, active=False),
            repo.reference("On", good),
        ],
    )

    choice = resolver.applicable_tariff(ctx)
    assert choice.tariff.name == "Good"
    assert choice.reference.name == "On"
    assert resolver.resolve_price(exam, ctx).tariff_name == "Good"


def test_falls_back_to_public_reference(repo, resolver):
    public_tariff = repo.add_tariff("Público")
    exam = repo.add_exam(1, public=True)
    repo.set_price(public_tariff, exam, "30.00")
    repo.public = repo.reference("Público General", public_tariff)

    for ctx in (CallerContext.anonymous(), CallerContext.member("u1", [])):
        result = resolver.resolve_price(exam, ctx)
        assert isinstance(result, PriceQuote)
        assert result.price == Decimal("30.00")
        assert result.has_special_pricing is False


def test_no_tariff_when_public_reference_missing_or_disabled(repo, resolver):
    public_tariff = repo.add_tariff("Público", enabled=False)
    exam = repo.add_exam(1)
    repo.set_price(public_tariff, exam, "30.00")

    assert resolver.resolve_price(exam, CallerContext.anonymous()) == Unavailable(exam, UnavailableReason.NO_TARIFF)

    repo.public = repo.reference("Público General", public_tariff)
    assert resolver.resolve_price(exam, CallerContext.anonymous()).reason == UnavailableReason.NO_TARIFF

    repo.public = repo.reference("Público General", None)
    assert resolver.resolve_price(exam, CallerContext.anonymous()).reason == UnavailableReason.NO_TARIFF


def test_missing_price_is_unavailable_not_error(repo, resolver):
    clinic = repo.add_tariff("Clinic A")
    exam = repo.add_exam(1)
    ctx = CallerContext.member("u1", [repo.reference("R1", clinic)])

    assert resolver.resolve_price(exam, ctx) == Unavailable(exam, UnavailableReason.NO_PRICE)


def test_unknown_exam_is_not_found(repo, resolver):
    clinic = repo.add_tariff("Clinic A")
    ctx = CallerContext.member("u1", [repo.reference("R1", clinic)])

    assert resolver.resolve_price(99, ctx) == NotFound(entity="exam", id=99)


def test_capability_gate_short_circuits_without_store_access(repo, resolver):
    clinic = repo.add_tariff("Clinic A")
    exam = repo.add_exam(1)
    repo.set_price(clinic, exam, "45.50")

    anon = CallerContext.anonymous(can_view_prices=False)
    member = CallerContext.member("u1", [repo.reference("R1", clinic)], can_view_prices=False)

    assert resolver.resolve_price(exam, anon).reason == UnavailableReason.NO_CAPABILITY
    assert resolver.resolve_price(exam, member).reason == UnavailableReason.NO_CAPABILITY
    # precedes existence
    assert resolver.resolve_price(12345, anon).reason == UnavailableReason.NO_CAPABILITY
    assert repo.calls == {}


def test_batch_uses_one_tariff_decision_and_one_price_query(repo, resolver):
    clinic = repo.add_tariff("Clinic A")
    priced = [repo.add_exam(i) for i in range(1, 41)]
    for e in priced[:30]:
        repo.set_price(clinic, e, f"{e}.00")
    ctx = CallerContext.member("u1", [repo.reference("R1", clinic)])

    results = resolver.resolve_prices(priced + [999], ctx)

    assert len(results) == 41
    assert sum(isinstance(r, PriceQuote) for r in results.values()) == 30
    assert sum(isinstance(r, Unavailable) for r in results.values()) == 10
    assert results[999] == NotFound(entity="exam", id=999)
    assert repo.calls["prices_for"] == 1
    assert repo.calls["existing_exam_ids"] == 1
    assert repo.calls["enabled_tariffs"] == 1


def test_batch_keeps_input_order_and_collapses_duplicates(repo, resolver):
    for i in (3, 1, 2):
        repo.add_exam(i)

    results = resolver.resolve_prices([3, 1, 3, 2], CallerContext.anonymous())

    assert list(results) == [3, 1, 2]
    assert resolver.resolve_prices([], CallerContext.anonymous()) == {}


def test_batch_above_limit_is_rejected(repo, resolver, settings):
    settings.PRICING_MAX_BATCH_SIZE = 3

    with pytest.raises(ValidationError):
        resolver.resolve_prices([1, 2, 3, 4], CallerContext.anonymous())


def test_store_error_fails_closed(repo, resolver):
    clinic = repo.add_tariff("Clinic A")
    exam = repo.add_exam(1)
    repo.set_price(clinic, exam, "45.50")
    repo.fail_with = OperationalError("connection lost")
    ctx = CallerContext.member("u1", [repo.reference("R1", clinic)])

    assert resolver.resolve_price(exam, ctx) == Unavailable(exam, UnavailableReason.ERROR)
    assert resolver.applicable_tariff(ctx) is None


def test_expired_deadline_fails_closed(repo, resolver):
    clinic = repo.add_tariff("Clinic A")
    exam = repo.add_exam(1)
    repo.set_price(clinic, exam, "45.50")
    now = [100.0]
    deadline = Deadline.after(1.0, clock=lambda: now[0])
    ctx = CallerContext.member("u1", [repo.reference("R1", clinic)]).with_deadline(deadline)

    assert isinstance(resolver.resolve_price(exam, ctx), PriceQuote)

    now[0] = 101.5
    assert resolver.resolve_price(exam, ctx) == Unavailable(exam, UnavailableReason.DEADLINE)
    assert resolver.applicable_tariff(ctx) is None


def test_deadline_remaining():
    now = [10.0]
    deadline = Deadline.after(2.0, clock=lambda: now[0])

    assert deadline.remaining() == 2.0
    assert deadline.expired is False
    now[0] = 13.0
    assert deadline.remaining() == 0.0
    assert deadline.expired is True
