import pytest


@pytest.fixture
def application(client, scholarship, auth_headers):
    """A pending application owned by alice."""
    r = client.post("/applications", json={"scholarship_id": scholarship["id"]},
                    headers=auth_headers("alice@example.com", name="Alice"))
    return r.json()


def _set_status(client, moderator, app_id, status):
    r = client.patch(f"/applications/{app_id}/status", json={"status": status}, headers=moderator)
    assert r.status_code == 200


def _review(client, headers, app_id, rating=5, comment="Great"):
    return client.post("/reviews", json={"application_id": app_id, "rating": rating, "comment": comment},
                       headers=headers)


@pytest.mark.parametrize("status", ["pending", "rejected"])
def test_review_before_approval_is_refused(client, moderator, application, auth_headers, status):
    if status != "pending":
        _set_status(client, moderator, application["id"], status)
    r = _review(client, auth_headers("alice@example.com"), application["id"])
    assert r.status_code == 403
    assert r.json() == {"message": "Cannot review before approval"}


def test_review_of_missing_application_is_404(client, auth_headers):
    assert _review(client, auth_headers("alice@example.com"), 999).status_code == 404


def test_review_denormalises_from_application(client, admin, moderator, scholarship, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    client.patch(f"/scholarships/{scholarship['id']}",
                 json={"scholarship_name": "Renamed Award", "university_name": "Renamed U"}, headers=admin)
    r = _review(client, auth_headers("alice@example.com", name="Alice"), application["id"], rating=4)
    assert r.status_code == 201
    review = r.json()
    assert review["scholarship_name"] == application["scholarship_name"] == "Global Excellence Award"
    assert review["university_name"] == application["university_name"] == "MIT"
    assert review["scholarship_id"] == scholarship["id"]
    assert review["reviewer_email"] == "alice@example.com"
    assert review["reviewer_name"] == "Alice"
    assert review["rating"] == 4
    assert review["review_date"]


def test_reviewer_name_falls_back_to_user_record(client, moderator, application, make_user, auth_headers):
    make_user("carol@example.com", name="Carol C")
    _set_status(client, moderator, application["id"], "approved")
    r = _review(client, auth_headers("carol@example.com"), application["id"])
    assert r.status_code == 201
    assert r.json()["reviewer_name"] == "Carol C"


def test_one_review_per_application(client, moderator, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    alice = auth_headers("alice@example.com")
    assert _review(client, alice, application["id"]).status_code == 201
    again = _review(client, alice, application["id"])
    assert again.status_code == 400
    assert again.json() == {"message": "Already reviewed"}


def test_rating_out_of_range_is_400(client, moderator, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    assert _review(client, auth_headers("alice@example.com"), application["id"], rating=6).status_code == 400


def test_owner_update_and_delete(client, moderator, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    alice = auth_headers("alice@example.com")
    review_id = _review(client, alice, application["id"]).json()["id"]

    r = client.patch(f"/reviews/{review_id}", json={"comment": "Updated"}, headers=alice)
    assert r.status_code == 200
    assert r.json()["comment"] == "Updated"
    assert r.json()["rating"] == 5

    mine = client.get("/reviews", params={"email": "alice@example.com"}, headers=alice)
    assert [rv["id"] for rv in mine.json()] == [review_id]

    assert client.delete(f"/reviews/{review_id}", headers=alice).status_code == 200
    assert client.get("/reviews", headers=alice).json() == []


def test_other_user_cannot_touch_review(client, moderator, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    review_id = _review(client, auth_headers("alice@example.com"), application["id"]).json()["id"]
    bob = auth_headers("bob@example.com")

    stranger_edit = client.patch(f"/reviews/{review_id}", json={"rating": 1}, headers=bob)
    missing_edit = client.patch("/reviews/999", json={"rating": 1}, headers=bob)
    assert stranger_edit.status_code == missing_edit.status_code == 404
    assert stranger_edit.json() == missing_edit.json() == {"message": "Review not found"}
    assert client.delete(f"/reviews/{review_id}", headers=bob).status_code == 404
    assert client.get("/reviews", params={"email": "alice@example.com"}, headers=bob).status_code == 403


def test_moderator_can_list_and_delete_any_review(client, moderator, scholarship, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    review_id = _review(client, auth_headers("alice@example.com"), application["id"]).json()["id"]

    listed = client.get("/moderator/reviews", headers=moderator)
    assert [rv["id"] for rv in listed.json()] == [review_id]
    assert client.get(f"/scholarships/{scholarship['id']}/reviews").json()[0]["id"] == review_id

    assert client.delete(f"/moderator/reviews/{review_id}", headers=moderator).status_code == 200
    assert client.delete(f"/moderator/reviews/{review_id}", headers=moderator).status_code == 404
    assert client.get("/moderator/reviews", headers=moderator).json() == []


def test_moderator_cannot_edit_someone_elses_review(client, moderator, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    review_id = _review(client, auth_headers("alice@example.com"), application["id"]).json()["id"]
    r = client.patch(f"/reviews/{review_id}", json={"comment": "edited by mod"}, headers=moderator)
    assert r.status_code == 404


def test_empty_update_is_rejected_and_keeps_review_date(client, moderator, application, auth_headers):
    _set_status(client, moderator, application["id"], "approved")
    alice = auth_headers("alice@example.com")
    created = _review(client, alice, application["id"]).json()
    r = client.patch(f"/reviews/{created['id']}", json={}, headers=alice)
    assert r.status_code == 400
    assert r.json() == {"message": "No fields to update"}
    listed = client.get("/reviews", headers=alice).json()
    assert listed[0]["review_date"] == created["review_date"]
