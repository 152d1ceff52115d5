"""
API Tests - a defense session from topic proposal to outcome report
"""
from datetime import timedelta

import pytest

from defensehub.core.types import utcnow

API = "/api/v1"


async def create_rubric(client):
    response = await client.post(f"{API}/rubrics", json={
        "name": "Supervisor graduation rubric",
        "criteria": [
            {"id": "C1", "name": "Problem analysis", "max_score": 10, "pi": "PI1.1", "clo": "CLO1"},
            {"id": "C2", "name": "Implementation", "max_score": 10, "pi": "PI1.1", "clo": "CLO2"},
            {"id": "C3", "name": "Presentation", "max_score": 5},
        ],
    })
    assert response.status_code == 201
    return response.json()


async def create_session(client, rubric_id):
    response = await client.post(f"{API}/sessions", json={
        "name": "Graduation defense 2026",
        "session_type": "combined",
        "status": "ongoing",
        "expected_report_date": (utcnow() + timedelta(days=10)).isoformat(),
        "supervisor_graduation_rubric_id": rubric_id,
    })
    assert response.status_code == 201
    return response.json()


async def create_registration(client, session_id, student_id, name):
    response = await client.post(f"{API}/registrations", json={
        "session_id": session_id,
        "student_doc_id": f"doc-{student_id}",
        "student_id": student_id,
        "student_name": name,
    })
    assert response.status_code == 201
    return response.json()


class TestDefenseFlow:

    @pytest.mark.asyncio
    async def test_full_defense_flow(self, client):
        rubric = await create_rubric(client)
        assert rubric["max_total_score"] == 25
        session = await create_session(client, rubric["id"])

        response = await client.post(f"{API}/topics", json={
            "session_id": session["id"],
            "supervisor_id": "sup-1",
            "supervisor_name": "Dr. Hoang",
            "title": "Realtime bus arrival prediction",
            "max_students": 1,
        })
        assert response.status_code == 201
        topic = response.json()
        assert topic["status"] == "draft"

        # Drafts are not offered to students
        response = await client.get(f"{API}/sessions/{session['id']}/topics/available")
        assert response.json() == []

        response = await client.post(f"{API}/topics/{topic['id']}/approve")
        assert response.json()["status"] == "approved"

        first = await create_registration(client, session["id"], "20240001", "Nguyen Van An")
        second = await create_registration(client, session["id"], "20240002", "Tran Thi Binh")

        response = await client.get(f"{API}/sessions/{session['id']}/topics/available")
        available = response.json()
        assert [(t["id"], t["occupancy"], t["remaining_slots"]) for t in available] == [(topic["id"], 0, 1)]

        # Allocation
        response = await client.post(f"{API}/registrations/{first['id']}/topic", json={"topic_id": topic["id"]})
        assert response.status_code == 200
        assert response.json()["project_registration_status"] == "pending"
        assert response.json()["project_title"] == "Realtime bus arrival prediction"

        response = await client.post(f"{API}/registrations/{second['id']}/topic", json={"topic_id": topic["id"]})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CAPACITY_EXCEEDED"

        response = await client.get(f"{API}/sessions/{session['id']}/topics/available")
        assert response.json() == []

        # Proposal is gated on supervisor approval
        response = await client.post(f"{API}/registrations/{first['id']}/proposal", json={"proposal_link": "https://docs.example.com/p1"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "TRACK_NOT_WRITABLE"

        response = await client.get(f"{API}/registrations/{first['id']}/tracks/proposal")
        assert response.json() == {
            "registration_id": first["id"],
            "track": "proposal",
            "writable": False,
            "reason": "Topic registration has not been approved by the supervisor",
        }

        response = await client.post(f"{API}/registrations/{first['id']}/topic/decision", json={"supervisor_id": "sup-2", "approve": True})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_TOPIC_SUPERVISOR"

        response = await client.post(f"{API}/registrations/{first['id']}/topic/decision", json={"supervisor_id": "sup-1", "approve": True})
        assert response.status_code == 200
        assert response.json()["project_registration_status"] == "approved"

        # Approved registrations cannot be cancelled by default
        response = await client.delete(f"{API}/registrations/{first['id']}/topic")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CANCELLATION_NOT_ALLOWED"

        # Submission tracks
        response = await client.post(f"{API}/registrations/{first['id']}/proposal", json={"proposal_link": "https://docs.example.com/p1"})
        assert response.status_code == 200
        assert response.json()["proposal_status"] == "pending_approval"

        response = await client.post(f"{API}/registrations/{first['id']}/tracks/proposal/review", json={"approve": True, "note": "Good scope"})
        assert response.json()["proposal_status"] == "approved"
        assert response.json()["proposal_review_note"] == "Good scope"

        response = await client.post(f"{API}/registrations/{first['id']}/report", json={"report_link": "https://docs.example.com/r1"})
        assert response.status_code == 200
        assert response.json()["report_status"] == "pending_approval"

        response = await client.post(f"{API}/registrations/{first['id']}/post-defense", json={"post_defense_report_link": "https://docs.example.com/final"})
        assert response.status_code == 409

        # Evaluation and outcome report
        response = await client.put(f"{API}/evaluations", json={
            "registration_id": first["id"],
            "evaluator_id": "sup-1",
            "rubric_id": rubric["id"],
            "evaluation_type": "graduation",
            "scores": [
                {"criterion_id": "C1", "score": 8},
                {"criterion_id": "C2", "score": 6},
                {"criterion_id": "C3", "score": 4},
            ],
        })
        assert response.status_code == 200
        evaluation = response.json()
        assert evaluation["total_score"] == 18

        response = await client.put(f"{API}/evaluations/{evaluation['id']}", json={
            "evaluator_id": "sup-9",
            "scores": [{"criterion_id": "C1", "score": 1}],
        })
        assert response.status_code == 403

        response = await client.get(
            f"{API}/sessions/{session['id']}/outcomes",
            params={"report_type": "graduation", "source": "supervisor"},
        )
        assert response.status_code == 200
        matrix = response.json()
        assert matrix["has_outcome_data"] is True
        assert matrix["headers"] == [{"pi": "PI1.1", "clos": ["CLO1", "CLO2"]}]
        assert [(row["student_id"], row["scores"]) for row in matrix["rows"]] == [
            ("20240001", {"CLO1": 8.0, "CLO2": 6.0}),
            ("20240002", {"CLO1": None, "CLO2": None}),
        ]

        # No company rubric assigned to this session
        response = await client.get(
            f"{API}/sessions/{session['id']}/outcomes",
            params={"report_type": "internship", "source": "company"},
        )
        assert response.json()["has_outcome_data"] is False
        assert response.json()["rows"] == []

    @pytest.mark.asyncio
    async def test_rejection_frees_the_topic(self, client):
        rubric = await create_rubric(client)
        session = await create_session(client, rubric["id"])
        topic = (await client.post(f"{API}/topics", json={
            "session_id": session["id"],
            "supervisor_id": "sup-1",
            "supervisor_name": "Dr. Hoang",
            "title": "Federated learning on phones",
        })).json()
        await client.post(f"{API}/topics/{topic['id']}/approve")
        registration = await create_registration(client, session["id"], "20240003", "Le Van Cuong")

        await client.post(f"{API}/registrations/{registration['id']}/topic", json={"topic_id": topic["id"]})
        response = await client.post(
            f"{API}/registrations/{registration['id']}/topic/decision",
            json={"supervisor_id": "sup-1", "approve": False},
        )

        body = response.json()
        assert body["project_registration_status"] == "rejected"
        assert body["topic_id"] is None
        assert body["project_title"] is None

        response = await client.get(f"{API}/sessions/{session['id']}/topics/available")
        assert [t["remaining_slots"] for t in response.json()] == [1]


class TestFeatureFlagsApi:

    @pytest.mark.asyncio
    async def test_get_and_update(self, client):
        response = await client.get(f"{API}/settings/features")
        assert response.json()["require_report_approval"] is True

        response = await client.put(
            f"{API}/settings/features",
            json={"allow_student_registration": False},
            headers={"X-User-ID": "admin-1"},
        )
        assert response.status_code == 200
        assert response.json()["allow_student_registration"] is False
        assert response.json()["require_report_approval"] is True

    @pytest.mark.asyncio
    async def test_closed_registration_blocks_allocation(self, client):
        rubric = await create_rubric(client)
        session = await create_session(client, rubric["id"])
        registration = await create_registration(client, session["id"], "20240004", "Pham Duc")
        await client.put(f"{API}/settings/features", json={"allow_student_registration": False})

        response = await client.post(f"{API}/registrations/{registration['id']}/topic", json={"topic_id": "any"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "TOPIC_NOT_OPEN"


class TestApiPlumbing:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get(f"{API}/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_not_found_error_shape(self, client):
        response = await client.get(f"{API}/topics/missing")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": {
                "code": "TOPIC_NOT_FOUND",
                "message": "Topic with ID 'missing' not found",
                "details": {"resource_type": "Topic", "resource_id": "missing"},
            },
        }

    @pytest.mark.asyncio
    async def test_request_id_header(self, client):
        response = await client.get(f"{API}/settings/features")

        assert response.headers["X-Request-ID"]
        assert "X-Response-Time" in response.headers

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, client):
        rubric = await create_rubric(client)
        session = await create_session(client, rubric["id"])
        await create_registration(client, session["id"], "20240005", "Vo Thi Em")

        response = await client.post(f"{API}/registrations", json={
            "session_id": session["id"],
            "student_doc_id": "doc-20240005",
            "student_id": "20240005",
            "student_name": "Vo Thi Em",
        })

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_REGISTRATION"

    @pytest.mark.asyncio
    async def test_assign_internship_supervisor(self, client):
        rubric = await create_rubric(client)
        session = await create_session(client, rubric["id"])
        first = await create_registration(client, session["id"], "20240006", "Dang Van Phuc")
        second = await create_registration(client, session["id"], "20240007", "Bui Thi Giang")

        response = await client.put(f"{API}/registrations/internship-supervisor", json={
            "registration_ids": [second["id"], first["id"]],
            "internship_supervisor_id": "company-7",
            "internship_supervisor_name": "Ms. Thu",
        })

        assert response.status_code == 200
        assert [r["student_id"] for r in response.json()] == ["20240006", "20240007"]
        assert {r["internship_supervisor_id"] for r in response.json()} == {"company-7"}

        response = await client.put(f"{API}/registrations/internship-supervisor", json={
            "registration_ids": ["missing"],
            "internship_supervisor_id": "company-7",
            "internship_supervisor_name": "Ms. Thu",
        })
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "REGISTRATION_NOT_FOUND"
