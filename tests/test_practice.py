"""
Tests for AI question generation, practice submission and history.
"""
import json

import pytest

from conftest import auth_headers
from toeic_api.core.errors import AIProviderError
from toeic_api.db.models.usage import UsageQuota


def _questions_json(n: int, fenced: bool = False) -> str:
    items = [
        {
            "question": f"The manager asked us to ____ the report by Friday. ({i})",
            "options": ["submit", "submitting", "submitted", "submits"],
            "correctAnswer": "A",
            "explanation": "Base form after 'to'.",
        }
        for i in range(n)
    ]
    text = json.dumps(items)
    return f"Here you go:\n```json\n{text}\n```" if fenced else text


def _generate(client, user, **overrides):
    body = {"type": "READING_PART5", "difficulty": "LEVEL_600_700", "count": 5}
    body.update(overrides)
    return client.post("/api/practice/questions/generate", json=body, headers=auth_headers(user))


def test_generate_exact_count(client, db, trial_user, fake_provider):
    """A valid request returns exactly `count` questions and counts one use."""
    fake_provider.replies.append(_questions_json(6, fenced=True))

    response = _generate(client, trial_user)

    assert response.status_code == 200
    questions = response.json()["data"]["questions"]
    assert len(questions) == 5
    assert all(q["correctAnswer"] == 0 for q in questions)
    assert all(q["type"] == "READING_PART5" for q in questions)
    assert len({q["id"] for q in questions}) == 5

    quota = db.query(UsageQuota).filter(
        UsageQuota.user_id == trial_user.id, UsageQuota.resource_type == "daily_practice"
    ).first()
    assert quota.used_count == 1


@pytest.mark.parametrize("count", [0, 21])
def test_generate_count_out_of_range(client, trial_user, fake_provider, count):
    """Out-of-range counts are rejected before the provider is called."""
    response = _generate(client, trial_user, count=count)

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"
    assert fake_provider.calls == []


def test_generate_short_answer_fails(client, db, trial_user, fake_provider):
    """Fewer valid questions than requested is an error, not a partial result."""
    fake_provider.replies.append(_questions_json(3))

    response = _generate(client, trial_user)

    assert response.status_code == 502
    assert response.json()["error"] == "Question generation failed"
    assert db.query(UsageQuota).filter(UsageQuota.user_id == trial_user.id).count() == 0


def test_generate_provider_error(client, trial_user, fake_provider):
    fake_provider.error = AIProviderError("timeout")

    response = _generate(client, trial_user)

    assert response.status_code == 502
    assert "timeout" in response.json()["error"]


def test_generate_without_provider(client, trial_user):
    from toeic_api.llm.router import get_llm_provider
    from toeic_api.main import app

    app.dependency_overrides[get_llm_provider] = lambda: None

    response = _generate(client, trial_user)

    assert response.status_code == 503


def test_generate_free_user_needs_subscription(client, test_user, fake_provider):
    response = _generate(client, test_user)

    assert response.status_code == 403
    assert response.json()["errorCode"] == "SUBSCRIPTION_REQUIRED"
    assert fake_provider.calls == []


def test_generate_part6_documents_are_flattened(client, trial_user, fake_provider):
    fake_provider.replies.append(json.dumps([
        {
            "document": "To: All staff\nFrom: HR\n...",
            "questions": [
                {"question": f"Blank {i}", "options": ["a", "b", "c", "d"], "correctAnswer": 2}
                for i in range(4)
            ],
        }
    ]))

    response = _generate(client, trial_user, type="READING_PART6", count=4)

    assert response.status_code == 200
    questions = response.json()["data"]["questions"]
    assert len(questions) == 4
    assert all(q["passage"].startswith("To: All staff") for q in questions)


def test_submit_and_history(client, test_user):
    submission = {
        "sessionId": "session-1",
        "questionType": "READING_PART5",
        "difficulty": "LEVEL_600_700",
        "questions": [
            {"questionId": "q1", "userAnswer": 0, "isCorrect": True, "timeSpent": 20, "source": "real"},
            {"questionId": "q2", "userAnswer": 1, "isCorrect": False, "timeSpent": 30},
            {"questionId": "q3", "userAnswer": 2, "isCorrect": True, "timeSpent": 25, "source": "ai_pool"},
            {"questionId": "q4", "userAnswer": 3, "isCorrect": True, "timeSpent": 15},
        ],
    }

    response = client.post("/api/practice/submit", json=submission, headers=auth_headers(test_user))

    assert response.status_code == 201
    record = response.json()["data"]
    assert record["totalQuestions"] == 4
    assert record["correctAnswers"] == 3
    assert record["score"] == 800
    assert record["timeSpent"] == 90
    assert (record["realQuestions"], record["aiPoolQuestions"], record["realtimeQuestions"]) == (1, 1, 2)

    history = client.get("/api/practice/history", headers=auth_headers(test_user)).json()["data"]
    assert history["pagination"]["total"] == 1
    assert history["records"][0]["sessionId"] == "session-1"

    detail = client.get(f"/api/practice/records/{record['id']}", headers=auth_headers(test_user))
    assert len(detail.json()["data"]["questions"]) == 4


def test_record_of_other_user_is_hidden(client, db, test_user, trial_user):
    submission = {"sessionId": "s", "questions": [{"questionId": "q1", "isCorrect": True}]}
    record_id = client.post("/api/practice/submit", json=submission, headers=auth_headers(test_user)).json()["data"]["id"]

    response = client.get(f"/api/practice/records/{record_id}", headers=auth_headers(trial_user))

    assert response.status_code == 404
