# lab_core/references/tests/test_references_api.py
import pytest

from lab_core.references.models import Membership, Reference

pytestmark = pytest.mark.django_db

BASE = "/api/v1/references/"


def test_create_retrieve_and_list_references(api_client, make_tariff):
    tariff = make_tariff("Clinic A")

    res = api_client.post(
        BASE,
        {"name": "Clínica A", "business_name": "Clínica A SAC", "default_tariff_id": str(tariff.id)},
        format="json",
    )
    assert res.status_code == 201, res.data
    assert res.data["default_tariff_name"] == "Clinic A"
    ref_id = res.data["id"]

    res = api_client.get(f"{BASE}{ref_id}/")
    assert res.status_code == 200
    assert res.data["default_tariff_id"] == str(tariff.id)

    res = api_client.get(BASE)
    assert res.status_code == 200
    assert res.data["results"][0]["member_count"] == 0


def test_reference_without_tariff_serializes_nulls(api_client):
    res = api_client.post(BASE, {"name": "Empresa X"}, format="json")

    assert res.status_code == 201
    assert res.data["default_tariff_id"] is None
    assert res.data["default_tariff_name"] is None


def test_patch_reference_deactivates(api_client, make_reference):
    ref = make_reference("R")

    res = api_client.patch(f"{BASE}{ref.id}/", {"active": False}, format="json")

    assert res.status_code == 200
    assert res.data["active"] is False
    assert res.data["name"] == "R"


def test_members_assign_list_remove(api_client, make_reference):
    ref = make_reference("R")
    url = f"{BASE}{ref.id}/members/"

    res = api_client.post(url, {"user_id": "u1"}, format="json")
    assert res.status_code == 201
    assert res.data["user_id"] == "u1"

    res = api_client.post(url, {"user_id": "u1"}, format="json")
    assert res.status_code == 201
    assert Membership.objects.filter(reference=ref).count() == 1

    res = api_client.get(url)
    assert res.status_code == 200
    assert [m["user_id"] for m in res.data["results"]] == ["u1"]

    res = api_client.delete(url, {"user_id": "u1"}, format="json")
    assert res.status_code == 204
    res = api_client.delete(url, {"user_id": "u1"}, format="json")
    assert res.status_code == 204
    assert Membership.objects.count() == 0


def test_delete_reference_cascades_memberships(api_client, make_reference, join):
    ref = make_reference("R")
    join("u1", ref)

    res = api_client.delete(f"{BASE}{ref.id}/")

    assert res.status_code == 204
    assert not Reference.objects.filter(id=ref.id).exists()
    assert Membership.objects.count() == 0


def test_unknown_reference_is_404_envelope(api_client):
    res = api_client.get(f"{BASE}00000000-0000-0000-0000-000000000000/")

    assert res.status_code == 404
    assert res.data["error"]["code"] == "not_found"


def test_members_endpoint_is_admin_only(member_client, make_reference):
    ref = make_reference("R")

    res = member_client.post(f"{BASE}{ref.id}/members/", {"user_id": "u1"}, format="json")

    assert res.status_code == 403
    assert res.data["error"]["code"] == "permission_denied"
