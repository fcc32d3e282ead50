"""
v1 integration API tests.

Verifies:
- Key authentication (401) and per-endpoint permission codes (403)
- Check-in fetch / list / notes, with site-pinned keys
- Allocation listing filters and ceilings
- Forum listing ceilings and post creation against locked topics
- Error bodies use {"error": {"message", "code"}}
"""

from datetime import date, datetime

import pytest

from casework.models import (
    BudgetAllocation,
    CheckIn,
    CheckinNote,
    Client,
    ForumCategory,
    ForumPost,
    ForumTopic,
    SecurityEvent,
)
from casework.services import api_key_service
from conftest import key_headers


@pytest.fixture
def checkin(db_session, site):
    checkin = CheckIn(
        site_id=site.id,
        first_name="Pat",
        last_name="Visitor",
        check_in_time=datetime(2025, 9, 1, 9, 30),
    )
    db_session.add(checkin)
    db_session.commit()
    return checkin


@pytest.fixture
def topic(db_session):
    category = ForumCategory(name="General")
    db_session.add(category)
    db_session.flush()
    topic = ForumTopic(category_id=category.id, title="Welcome")
    db_session.add(topic)
    db_session.commit()
    return topic


def _error(response):
    return response.get_json()["error"]


class TestKeyAuth:

    def test_missing_key(self, client, db_session):
        response = client.get("/api/v1/checkins")
        assert response.status_code == 401
        assert _error(response)["code"] == "AUTH_UNAUTHORIZED"

    def test_invalid_key_logged(self, client, db_session):
        response = client.get("/api/v1/checkins", headers=key_headers("f" * 64))
        assert response.status_code == 401
        assert db_session.query(SecurityEvent).filter_by(event_type="API_KEY_INVALID").count() == 1

    def test_bearer_header_accepted(self, client, make_api_key):
        plaintext = make_api_key("read:checkin_data")
        response = client.get("/api/v1/checkins", headers={"Authorization": f"Bearer {plaintext}"})
        assert response.status_code == 200

    def test_revoked_key(self, client, db_session, make_api_key):
        plaintext = make_api_key("read:checkin_data")
        key = api_key_service.authenticate_api_key(plaintext)
        api_key_service.revoke_api_key(key.id)
        assert client.get("/api/v1/checkins", headers=key_headers(plaintext)).status_code == 401

    def test_missing_permission(self, client, make_api_key):
        plaintext = make_api_key("read:client_data")
        response = client.get("/api/v1/checkins", headers=key_headers(plaintext))
        assert response.status_code == 403
        assert _error(response)["code"] == "AUTH_FORBIDDEN"


class TestCheckins:

    def test_get_checkin(self, client, make_api_key, checkin):
        plaintext = make_api_key("read:checkin_data")
        response = client.get(f"/api/v1/checkins/{checkin.id}", headers=key_headers(plaintext))
        assert response.status_code == 200
        body = response.get_json()
        assert body["first_name"] == "Pat"
        assert body["check_in_time"].endswith("Z")

    @pytest.mark.parametrize("raw", ["abc", "0", "-3"])
    def test_invalid_id(self, client, make_api_key, raw):
        plaintext = make_api_key("read:checkin_data")
        response = client.get(f"/api/v1/checkins/{raw}", headers=key_headers(plaintext))
        assert response.status_code == 400
        assert _error(response)["code"] == "INVALID_ID_FORMAT"

    def test_missing_checkin(self, client, make_api_key, db_session):
        plaintext = make_api_key("read:checkin_data")
        response = client.get("/api/v1/checkins/999", headers=key_headers(plaintext))
        assert response.status_code == 404
        assert _error(response)["code"] == "NOT_FOUND"

    def test_site_pinned_key_ignores_site_filter(self, client, db_session, make_api_key, checkin, other_site, site):
        db_session.add(CheckIn(site_id=other_site.id, first_name="Away", last_name="Visitor"))
        db_session.commit()
        plaintext = make_api_key("read:checkin_data", site_id=site.id)

        response = client.get(
            f"/api/v1/checkins?site_id={other_site.id}", headers=key_headers(plaintext)
        )
        assert response.status_code == 200
        body = response.get_json()
        assert [row["site_id"] for row in body["data"]] == [site.id]
        assert body["pagination"]["total_records"] == 1

    def test_site_pinned_key_ignores_malformed_site_filter(self, client, db_session, make_api_key, checkin, site):
        plaintext = make_api_key("read:checkin_data", site_id=site.id)

        response = client.get("/api/v1/checkins?site_id=abc", headers=key_headers(plaintext))
        assert response.status_code == 200
        assert [row["id"] for row in response.get_json()["data"]] == [checkin.id]

    def test_list_limit_ceiling(self, client, make_api_key):
        plaintext = make_api_key("read:checkin_data")
        response = client.get("/api/v1/checkins?limit=1001", headers=key_headers(plaintext))
        assert response.status_code == 400
        assert _error(response)["code"] == "INVALID_QUERY_PARAM"

    def test_add_note(self, client, db_session, make_api_key, checkin):
        plaintext = make_api_key("create:checkin_note")
        response = client.post(
            f"/api/v1/checkins/{checkin.id}/notes",
            json={"note_text": "  Called back  "},
            headers=key_headers(plaintext),
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["note_text"] == "Called back"
        assert body["created_by_api_key_id"] is not None
        assert body["created_by_user_id"] is None

    def test_add_note_blank(self, client, db_session, make_api_key, checkin):
        plaintext = make_api_key("create:checkin_note")
        response = client.post(
            f"/api/v1/checkins/{checkin.id}/notes",
            json={"note_text": "   "},
            headers=key_headers(plaintext),
        )
        assert response.status_code == 400
        assert _error(response)["code"] == "MISSING_NOTE_TEXT"
        assert db_session.query(CheckinNote).count() == 0

    def test_add_note_missing_checkin(self, client, db_session, make_api_key):
        plaintext = make_api_key("create:checkin_note")
        response = client.post(
            "/api/v1/checkins/404/notes",
            json={"note_text": "hello"},
            headers=key_headers(plaintext),
        )
        assert response.status_code == 404

    def test_add_note_non_object_body(self, client, make_api_key, checkin):
        plaintext = make_api_key("create:checkin_note")
        response = client.post(
            f"/api/v1/checkins/{checkin.id}/notes",
            json=["note"],
            headers=key_headers(plaintext),
        )
        assert response.status_code == 400
        assert _error(response)["code"] == "INVALID_INPUT"


class TestAllocations:

    @pytest.fixture
    def rows(self, db_session, staff_budget, admin_budget, vendor, staff, director):
        db_session.add_all([
            BudgetAllocation(
                budget_id=staff_budget.id, vendor_id=vendor.id,
                transaction_date=date(2025, 9, 1), created_by_user_id=staff.id,
            ),
            BudgetAllocation(
                budget_id=admin_budget.id, vendor_id=vendor.id,
                transaction_date=date(2025, 9, 2), created_by_user_id=director.id,
            ),
        ])
        db_session.commit()

    def test_filters(self, client, make_api_key, rows, staff, staff_budget):
        plaintext = make_api_key("read:budget_allocations")

        response = client.get(f"/api/v1/allocations?user_id={staff.id}", headers=key_headers(plaintext))
        body = response.get_json()
        assert [row["budget_id"] for row in body["data"]] == [staff_budget.id]
        assert body["data"][0]["fiscal_year_start"] == "2025-07-01"

        response = client.get("/api/v1/allocations?fiscal_year=2024", headers=key_headers(plaintext))
        assert response.get_json()["data"] == []

        response = client.get("/api/v1/allocations?fiscal_year=2025", headers=key_headers(plaintext))
        assert response.get_json()["pagination"]["total_records"] == 2

    def test_limit_ceiling(self, client, make_api_key, rows):
        plaintext = make_api_key("read:budget_allocations")
        assert client.get("/api/v1/allocations?limit=100", headers=key_headers(plaintext)).status_code == 200

        response = client.get("/api/v1/allocations?limit=101", headers=key_headers(plaintext))
        assert response.status_code == 400
        assert _error(response)["code"] == "INVALID_QUERY_PARAM"

    def test_bad_filter(self, client, make_api_key, rows):
        plaintext = make_api_key("read:budget_allocations")
        response = client.get("/api/v1/allocations?grant_id=abc", headers=key_headers(plaintext))
        assert response.status_code == 400
        assert _error(response)["code"] == "INVALID_QUERY_PARAM"


class TestReports:

    def test_requires_scope_permission(self, client, make_api_key):
        plaintext = make_api_key("generate:reports")
        response = client.get("/api/v1/reports?type=checkin_detail", headers=key_headers(plaintext))
        assert response.status_code == 403

    def test_unknown_type(self, client, make_api_key):
        plaintext = make_api_key("generate:reports", "read:all_checkin_data")
        response = client.get("/api/v1/reports?type=everything", headers=key_headers(plaintext))
        assert response.status_code == 400
        assert _error(response)["code"] == "INVALID_REPORT_TYPE"

    def test_checkin_report(self, client, make_api_key, checkin):
        plaintext = make_api_key("generate:reports", "read:all_checkin_data")
        response = client.get("/api/v1/reports?type=checkin_detail", headers=key_headers(plaintext))
        assert response.status_code == 200
        body = response.get_json()
        assert body["pagination"]["total_records"] == 1
        assert body["data"][0]["id"] == checkin.id


class TestForum:

    def test_create_post_updates_topic(self, client, db_session, make_api_key, topic, staff):
        plaintext = make_api_key("create:forum_post", user_id=staff.id)
        response = client.post(
            "/api/v1/forum/posts",
            json={"topic_id": topic.id, "post_body": "Reply from the integration"},
            headers=key_headers(plaintext),
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["user_id"] == staff.id
        assert body["created_by_api_key_id"] is not None

        db_session.refresh(topic)
        assert topic.last_post_at is not None
        assert topic.last_post_user_id == staff.id

    def test_locked_topic(self, client, db_session, make_api_key, topic):
        topic.is_locked = True
        db_session.commit()
        plaintext = make_api_key("create:forum_post")

        response = client.post(
            "/api/v1/forum/posts",
            json={"topic_id": topic.id, "post_body": "Too late"},
            headers=key_headers(plaintext),
        )
        assert response.status_code == 404
        assert db_session.query(ForumPost).count() == 0

        db_session.refresh(topic)
        assert topic.last_post_at is None

    def test_empty_body(self, client, make_api_key, topic):
        plaintext = make_api_key("create:forum_post")
        response = client.post(
            "/api/v1/forum/posts",
            json={"topic_id": topic.id, "post_body": " "},
            headers=key_headers(plaintext),
        )
        assert response.status_code == 400

    def test_listing_ceilings(self, client, db_session, make_api_key, topic):
        for n in range(3):
            db_session.add(ForumPost(topic_id=topic.id, content=f"post {n}", created_at=datetime(2025, 9, 1 + n)))
        db_session.commit()
        plaintext = make_api_key("read:all_forum_posts", "read:recent_forum_posts")

        response = client.get("/api/v1/forum/posts?limit=2", headers=key_headers(plaintext))
        body = response.get_json()
        assert [p["content"] for p in body["data"]] == ["post 2", "post 1"]
        assert body["pagination"]["total_pages"] == 2

        assert client.get("/api/v1/forum/posts?limit=101", headers=key_headers(plaintext)).status_code == 400

        response = client.get("/api/v1/forum/posts/recent?limit=1", headers=key_headers(plaintext))
        assert [p["content"] for p in response.get_json()["data"]] == ["post 2"]
        assert "pagination" not in response.get_json()

        assert client.get("/api/v1/forum/posts/recent?limit=51", headers=key_headers(plaintext)).status_code == 400


class TestClients:

    def test_get_client(self, client, db_session, make_api_key, site):
        record = Client(first_name="Jo", last_name="Seeker", email="jo@example.org", site_id=site.id)
        db_session.add(record)
        db_session.commit()
        plaintext = make_api_key("read:client_data")

        response = client.get(f"/api/v1/clients/{record.id}", headers=key_headers(plaintext))
        assert response.status_code == 200
        assert response.get_json()["email"] == "jo@example.org"

        assert client.get("/api/v1/clients/999", headers=key_headers(plaintext)).status_code == 404
