"""
Tests for the vocabulary notebook and SM-2 review scheduling.
"""
import json
from datetime import datetime, timedelta

import pytest

from conftest import auth_headers
from toeic_api.db.models.vocabulary import VocabularyItem
from toeic_api.services.subscription_service import ensure_plan_row
from toeic_api.services.vocabulary_service import apply_review

DEFINITION = json.dumps({
    "word": "negotiate",
    "phonetic": "/nɪˈɡoʊʃieɪt/",
    "definition": "to discuss in order to reach an agreement",
    "meanings": [
        {
            "partOfSpeech": "verb",
            "definitions": [{"definition": "to try to reach an agreement", "example": "We negotiated a discount."}],
        }
    ],
})


def _item(**fields) -> VocabularyItem:
    values = {"word": "agenda", "ease_factor": 2.5, "interval_days": 0, "repetitions": 0}
    values.update(fields)
    return VocabularyItem(**values)


# ============================================
# SM-2 scheduling
# ============================================

def test_review_intervals_follow_sm2():
    now = datetime(2024, 5, 1, 9, 0)
    item = _item()

    apply_review(item, correct=True, difficulty=0, now=now)
    assert (item.repetitions, item.interval_days) == (1, 1)
    assert item.ease_factor == pytest.approx(2.6)
    assert item.next_review_date == now + timedelta(days=1)

    apply_review(item, correct=True, difficulty=0, now=now)
    assert (item.repetitions, item.interval_days) == (2, 6)

    apply_review(item, correct=True, difficulty=0, now=now)
    assert item.repetitions == 3
    assert item.interval_days == round(6 * item.ease_factor)


def test_wrong_answer_resets_progress():
    item = _item(ease_factor=2.5, interval_days=15, repetitions=4)

    apply_review(item, correct=False)

    assert item.repetitions == 0
    assert item.interval_days == 1
    assert item.ease_factor == pytest.approx(2.3)


def test_ease_factor_floor():
    item = _item(ease_factor=1.35)

    apply_review(item, correct=False)
    assert item.ease_factor == pytest.approx(1.3)

    apply_review(item, correct=True, difficulty=5)
    assert item.ease_factor == pytest.approx(1.3)


# ============================================
# API
# ============================================

def test_add_word_with_definition(client, test_user, fake_provider):
    fake_provider.replies.append(f"```json\n{DEFINITION}\n```")

    response = client.post(
        "/api/vocabulary",
        json={"word": "  Negotiate ", "context": "We negotiated a discount.", "tags": ["business"]},
        headers=auth_headers(test_user),
    )

    assert response.status_code == 201
    word = response.json()["data"]
    assert word["word"] == "negotiate"
    assert word["meanings"][0]["partOfSpeech"] == "verb"
    assert word["definitionError"] is False
    assert word["tags"] == ["business"]


def test_add_word_keeps_placeholder_when_lookup_fails(client, test_user, fake_provider):
    fake_provider.replies.append("I cannot help with that.")

    response = client.post("/api/vocabulary", json={"word": "agenda"}, headers=auth_headers(test_user))

    assert response.status_code == 201
    word = response.json()["data"]
    assert word["definitionError"] is True
    assert word["meanings"][0]["partOfSpeech"] == "unknown"


def test_add_duplicate_word(client, test_user, fake_provider):
    fake_provider.replies.extend([DEFINITION, DEFINITION])
    headers = auth_headers(test_user)

    client.post("/api/vocabulary", json={"word": "negotiate"}, headers=headers)
    response = client.post("/api/vocabulary", json={"word": "NEGOTIATE"}, headers=headers)

    assert response.status_code == 400
    assert "already exists" in response.json()["error"]


def test_review_endpoint_and_stats(client, db, test_user):
    db.add(_item(user_id=test_user.id, next_review_date=datetime.utcnow() - timedelta(hours=1)))
    db.add(_item(user_id=test_user.id, word="invoice", next_review_date=datetime.utcnow() + timedelta(days=3)))
    db.commit()
    headers = auth_headers(test_user)

    due = client.get("/api/vocabulary/review", headers=headers).json()["data"]
    assert due["total"] == 1
    item_id = due["words"][0]["id"]

    reviewed = client.post(f"/api/vocabulary/{item_id}/review", json={"correct": True}, headers=headers)
    assert reviewed.status_code == 200
    assert reviewed.json()["data"]["repetitions"] == 1

    stats = client.get("/api/vocabulary/stats", headers=headers).json()["data"]
    assert stats == {"total": 2, "mastered": 0, "dueForReview": 0}


def test_import_skips_duplicates(client, db, test_user):
    db.add(_item(user_id=test_user.id, word="agenda"))
    db.commit()

    response = client.post(
        "/api/vocabulary/import",
        json={"words": ["Agenda", "invoice", "Invoice", "deadline"]},
        headers=auth_headers(test_user),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert [w["word"] for w in data["imported"]] == ["invoice", "deadline"]
    assert all(w["definitionLoading"] for w in data["imported"])
    assert data["skipped"] == ["Agenda", "Invoice"]


def _limit_free_plan_words(db, max_words):
    plan = ensure_plan_row(db, "free")
    plan.max_vocabulary_words = max_words
    db.commit()


def test_import_stops_at_vocabulary_limit(client, db, test_user):
    """Words past the plan's vocabulary limit are skipped, not saved."""
    _limit_free_plan_words(db, 3)
    db.add(_item(user_id=test_user.id, word="agenda"))
    db.add(_item(user_id=test_user.id, word="invoice"))
    db.commit()

    response = client.post(
        "/api/vocabulary/import",
        json={"words": ["deadline", "budget", "audit", "merger"]},
        headers=auth_headers(test_user),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert [w["word"] for w in data["imported"]] == ["deadline"]
    assert data["skipped"] == ["budget", "audit", "merger"]
    assert data["limitReached"] is True

    stats = client.get("/api/vocabulary/stats", headers=auth_headers(test_user)).json()["data"]
    assert stats["total"] == 3


def test_import_refused_when_vocabulary_full(client, db, test_user):
    _limit_free_plan_words(db, 1)
    db.add(_item(user_id=test_user.id, word="agenda"))
    db.commit()

    response = client.post("/api/vocabulary/import", json={"words": ["invoice"]}, headers=auth_headers(test_user))

    assert response.status_code == 403
    assert response.json()["errorCode"] == "USAGE_LIMIT_EXCEEDED"
    assert db.query(VocabularyItem).filter(VocabularyItem.user_id == test_user.id).count() == 1


def test_refresh_definition(client, db, test_user, fake_provider):
    item = _item(user_id=test_user.id, word="negotiate", definition_loading=True)
    db.add(item)
    db.commit()
    fake_provider.replies.append(DEFINITION)

    response = client.post(f"/api/vocabulary/{item.id}/refresh-definition", headers=auth_headers(test_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["definitionLoading"] is False
    assert data["definition"] == "to discuss in order to reach an agreement"


def test_definition_lookup_without_provider(client, test_user):
    from toeic_api.llm.router import get_llm_provider
    from toeic_api.main import app

    app.dependency_overrides[get_llm_provider] = lambda: None

    response = client.post("/api/vocabulary/definition", json={"word": "agenda"}, headers=auth_headers(test_user))

    assert response.status_code == 503


def test_other_users_word_is_hidden(client, db, test_user, trial_user):
    item = _item(user_id=trial_user.id)
    db.add(item)
    db.commit()

    response = client.delete(f"/api/vocabulary/{item.id}", headers=auth_headers(test_user))

    assert response.status_code == 404


def test_list_filters_mastered(client, db, test_user):
    db.add(_item(user_id=test_user.id, word="agenda", mastered=True))
    db.add(_item(user_id=test_user.id, word="invoice"))
    db.commit()

    response = client.get(
        "/api/vocabulary", params={"mastered": "true", "sortBy": "word", "sortOrder": "asc"},
        headers=auth_headers(test_user),
    )

    data = response.json()["data"]
    assert [w["word"] for w in data["words"]] == ["agenda"]
    assert data["pagination"]["total"] == 1
