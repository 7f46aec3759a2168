import pytest

from conftest import auth, create_help_request, insert_help_request, register
from schemas import DonationCreate


@pytest.fixture
def owner(client):
    return register(client, "owner", contactNumber="0771111111")


@pytest.fixture
def donator(client):
    return register(client, "donator", contactNumber="0772222222")


@pytest.fixture
def help_request(client, owner):
    return create_help_request(client, token=owner["accessToken"])


def donations_path(help_request_id) -> str:
    return f"/api/help-requests/{help_request_id}/donations"


def pledge(client, help_request_id, user, items=None) -> dict:
    resp = client.post(
        donations_path(help_request_id),
        json={"rationItems": items or {"rice": 5, "water": 10}},
        headers=auth(user["accessToken"]),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_create_donation_requires_authentication(client, help_request):
    resp = client.post(donations_path(help_request["id"]), json={"rationItems": {"rice": 1}})
    assert resp.status_code == 401


def test_new_donation_has_all_flags_false(client, services, session, help_request, donator):
    donation = pledge(client, help_request["id"], donator)
    assert donation["helpRequestId"] == help_request["id"]
    assert donation["donatorId"] == donator["user"]["id"]
    assert donation["rationItems"] == {"rice": 5, "water": 10}

    stored = services.donations.donation_dao.find_by_id(session, donation["id"])
    assert stored.donator_marked_scheduled is False
    assert stored.donator_marked_completed is False
    assert stored.owner_marked_completed is False


def test_create_donation_path_id_wins_over_body(client, help_request, donator):
    resp = client.post(
        donations_path(help_request["id"]),
        json={"helpRequestId": 999, "rationItems": {"rice": 1}},
        headers=auth(donator["accessToken"]),
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["helpRequestId"] == help_request["id"]


def test_create_donation_invalid_help_request_id(client, donator):
    resp = client.post(
        donations_path("abc"), json={"rationItems": {"rice": 1}}, headers=auth(donator["accessToken"])
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid help request ID"


def test_create_donation_unknown_help_request(client, donator):
    resp = client.post(
        donations_path(404), json={"rationItems": {"rice": 1}}, headers=auth(donator["accessToken"])
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Help request not found"


def test_create_donation_requires_ration_items(client, help_request, donator):
    resp = client.post(donations_path(help_request["id"]), json={}, headers=auth(donator["accessToken"]))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"

    resp = client.post(
        donations_path(help_request["id"]), json={"rationItems": {}}, headers=auth(donator["accessToken"])
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Ration items are required"


def test_create_donation_on_closed_request(client, session, donator):
    closed = insert_help_request(session, status="CLOSED")
    resp = client.post(
        donations_path(closed.id), json={"rationItems": {"rice": 1}}, headers=auth(donator["accessToken"])
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Help request is not open for donations"


def test_full_lifecycle_sets_every_flag(client, help_request, owner, donator):
    donation = pledge(client, help_request["id"], donator)
    base = f"{donations_path(help_request['id'])}/{donation['id']}"

    resp = client.patch(f"{base}/schedule", headers=auth(donator["accessToken"]))
    assert resp.status_code == 200
    assert resp.json()["message"] == "Donation marked as scheduled"
    assert resp.json()["data"]["donatorMarkedScheduled"] is True

    resp = client.patch(f"{base}/complete-donator", headers=auth(donator["accessToken"]))
    assert resp.status_code == 200
    assert resp.json()["data"]["donatorMarkedCompleted"] is True

    resp = client.patch(f"{base}/complete-owner", headers=auth(owner["accessToken"]))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["donatorMarkedScheduled"] is True
    assert data["donatorMarkedCompleted"] is True
    assert data["ownerMarkedCompleted"] is True


def test_repeated_transitions_are_idempotent(client, help_request, donator):
    donation = pledge(client, help_request["id"], donator)
    url = f"{donations_path(help_request['id'])}/{donation['id']}/schedule"
    first = client.patch(url, headers=auth(donator["accessToken"])).json()["data"]
    second = client.patch(url, headers=auth(donator["accessToken"])).json()["data"]
    assert first["donatorMarkedScheduled"] is second["donatorMarkedScheduled"] is True
    assert second["donatorMarkedCompleted"] is False


def test_donator_may_complete_without_scheduling(client, help_request, donator):
    donation = pledge(client, help_request["id"], donator)
    resp = client.patch(
        f"{donations_path(help_request['id'])}/{donation['id']}/complete-donator",
        headers=auth(donator["accessToken"]),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["donatorMarkedCompleted"] is True
    assert data["donatorMarkedScheduled"] is False


def test_only_donator_can_schedule(client, help_request, owner, donator):
    donation = pledge(client, help_request["id"], donator)
    base = f"{donations_path(help_request['id'])}/{donation['id']}"

    resp = client.patch(f"{base}/schedule", headers=auth(owner["accessToken"]))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Only the donator can mark this donation as scheduled"

    resp = client.patch(f"{base}/complete-donator", headers=auth(owner["accessToken"]))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Only the donator can mark this donation as completed"


def test_only_owner_can_complete_as_owner(client, help_request, donator):
    donation = pledge(client, help_request["id"], donator)
    resp = client.patch(
        f"{donations_path(help_request['id'])}/{donation['id']}/complete-owner",
        headers=auth(donator["accessToken"]),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Only the help request owner can mark this donation as completed"


def test_anonymous_request_has_no_owner_to_complete(client, donator):
    anonymous = create_help_request(client)
    donation = pledge(client, anonymous["id"], donator)
    resp = client.patch(
        f"{donations_path(anonymous['id'])}/{donation['id']}/complete-owner",
        headers=auth(donator["accessToken"]),
    )
    assert resp.status_code == 400


def test_transition_on_missing_donation_is_not_found(client, help_request, donator):
    resp = client.patch(
        f"{donations_path(help_request['id'])}/12345/schedule", headers=auth(donator["accessToken"])
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Donation not found"


def test_transition_with_invalid_donation_id(client, help_request, donator):
    resp = client.patch(
        f"{donations_path(help_request['id'])}/xyz/schedule", headers=auth(donator["accessToken"])
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid donation ID"


def test_transition_with_invalid_help_request_id(client, help_request, donator):
    donation = pledge(client, help_request["id"], donator)
    resp = client.patch(
        f"{donations_path('abc')}/{donation['id']}/schedule", headers=auth(donator["accessToken"])
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid help request ID"


@pytest.mark.parametrize("other_request", ["another", 9999])
def test_transition_under_wrong_help_request_is_not_found(
    client, services, session, help_request, owner, donator, other_request
):
    donation = pledge(client, help_request["id"], donator)
    if other_request == "another":
        other_request = create_help_request(client, token=owner["accessToken"])["id"]

    scheduled = client.patch(
        f"{donations_path(other_request)}/{donation['id']}/schedule",
        headers=auth(donator["accessToken"]),
    )
    received = client.patch(
        f"{donations_path(other_request)}/{donation['id']}/complete-owner",
        headers=auth(owner["accessToken"]),
    )
    for resp in (scheduled, received):
        assert resp.status_code == 404
        assert resp.json()["error"] == "Donation not found"

    stored = services.donations.donation_dao.find_by_id(session, donation["id"])
    assert stored.donator_marked_scheduled is False
    assert stored.owner_marked_completed is False


def test_transition_requires_authentication(client, help_request, donator):
    donation = pledge(client, help_request["id"], donator)
    resp = client.patch(f"{donations_path(help_request['id'])}/{donation['id']}/schedule")
    assert resp.status_code == 401


def test_owner_sees_donator_contact_number(client, help_request, owner, donator):
    pledge(client, help_request["id"], donator)

    as_owner = client.get(donations_path(help_request["id"]), headers=auth(owner["accessToken"]))
    assert as_owner.status_code == 200
    [donation] = as_owner.json()["data"]
    assert donation["donatorUsername"] == "donator"
    assert donation["donatorContactNumber"] == "0772222222"

    as_donator = client.get(donations_path(help_request["id"]), headers=auth(donator["accessToken"]))
    assert as_donator.json()["data"][0]["donatorContactNumber"] is None

    anonymous = client.get(donations_path(help_request["id"]))
    assert anonymous.json()["data"][0]["donatorContactNumber"] is None
    assert anonymous.json()["data"][0]["donatorUsername"] == "donator"


def test_donations_listed_newest_first(client, help_request, donator):
    first = pledge(client, help_request["id"], donator, {"rice": 1})
    second = pledge(client, help_request["id"], donator, {"water": 2})
    ids = [d["id"] for d in client.get(donations_path(help_request["id"])).json()["data"]]
    assert ids == [second["id"], first["id"]]


def test_donations_for_unknown_help_request(client):
    resp = client.get(donations_path(777))
    assert resp.status_code == 404


def test_service_lifecycle_in_order(services, session, client, help_request, owner, donator):
    created = services.donations.create_donation(
        session, help_request["id"], DonationCreate(ration_items={"rice": 2}), donator["user"]["id"]
    )
    assert created.success
    donation_id = created.data.id

    assert services.donations.mark_as_scheduled(session, donation_id, donator["user"]["id"]).success
    assert services.donations.mark_as_completed_by_donator(session, donation_id, donator["user"]["id"]).success
    result = services.donations.mark_as_completed_by_owner(session, donation_id, owner["user"]["id"])
    assert result.success
    assert result.data.donator_marked_scheduled
    assert result.data.donator_marked_completed
    assert result.data.owner_marked_completed
