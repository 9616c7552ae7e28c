# lab_core/conftest.py
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from lab_core.catalog.models import Exam
from lab_core.references.models import Membership, Reference
from lab_core.tariffs.models import PriceEntry, Tariff


@pytest.fixture
def admin_user(db):
    User = get_user_model()
    user = User.objects.create_user(username="admin", password="testpass", is_active=True)
    admin_group, _ = Group.objects.get_or_create(name="ADMIN")
    user.groups.add(admin_group)
    return user


@pytest.fixture
def member_user(db):
    User = get_user_model()
    return User.objects.create_user(username="member", password="testpass", is_active=True)


@pytest.fixture
def api_client(admin_user):
    c = APIClient()
    c.force_authenticate(user=admin_user)
    return c


@pytest.fixture
def member_client(member_user):
    c = APIClient()
    c.force_authenticate(user=member_user)
    return c


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def make_exam(db):
    def _make(name="Hemograma", *, category="Hematología", public=False, legacy_price=None, legacy_reference_price=None):
        return Exam.objects.create(
            name=name,
            category=category,
            is_public_visible=public,
            legacy_price=legacy_price,
            legacy_reference_price=legacy_reference_price,
        )

    return _make


@pytest.fixture
def make_tariff(db):
    def _make(name="Base", *, kind="sale", enabled=True, taxable=False):
        return Tariff.objects.create(name=name, kind=kind, is_enabled=enabled, is_taxable=taxable)

    return _make


@pytest.fixture
def make_reference(db):
    def _make(name="Clínica A", *, tariff=None, active=True, code=""):
        return Reference.objects.create(name=name, default_tariff=tariff, active=active, code=code)

    return _make


@pytest.fixture
def price(db):
    def _price(tariff, exam, amount):
        return PriceEntry.objects.create(tariff=tariff, exam=exam, price=Decimal(str(amount)))

    return _price


@pytest.fixture
def join(db):
    def _join(user_or_id, reference):
        user_id = str(getattr(user_or_id, "pk", user_or_id))
        return Membership.objects.create(user_id=user_id, reference=reference)

    return _join


@pytest.fixture
def public_tariff(make_tariff):
    return make_tariff("Público", kind="sale")


@pytest.fixture
def public_reference(make_reference, public_tariff, settings):
    return make_reference(settings.PRICING_PUBLIC_REFERENCE_NAME, tariff=public_tariff)
