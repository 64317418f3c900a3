"""
Tests for parsing and validating provider answers.
"""
import pytest

from conftest import FakeProvider
from toeic_api.core.errors import AIProviderNotConfigured, QuestionGenerationError
from toeic_api.services.ai_service import (
    GeneratedQuestion,
    extract_json_array,
    generate_questions,
    get_word_definition,
    normalize_answer,
    normalize_questions,
)


def test_extract_array_from_prose_and_fences():
    text = 'Sure! Here are the questions:\n```json\n[{"question": "q"}]\n```\nGood luck.'

    assert extract_json_array(text) == [{"question": "q"}]


def test_extract_array_from_wrapper_object():
    assert extract_json_array('{"questions": [1, 2]}') == [1, 2]


def test_extract_array_rejects_non_json():
    with pytest.raises(QuestionGenerationError):
        extract_json_array("I am unable to help with that request.")


@pytest.mark.parametrize("value,expected", [
    (2, 2),
    ("C", 2),
    ("(b)", 1),
    ("3", 3),
    (["A"], 0),
    (True, None),
    ("E", None),
])
def test_normalize_answer(value, expected):
    assert normalize_answer(value) == expected


def test_generated_question_answer_must_be_in_range():
    with pytest.raises(ValueError):
        GeneratedQuestion(
            id="q1", type="READING_PART5", category="Incomplete Sentences", difficulty="BEGINNER",
            question="q", options=["a", "b"], correctAnswer=2,
        )


def test_invalid_items_are_dropped():
    items = [
        {"question": "ok", "options": ["a", "b", "c", "d"], "correctAnswer": "D"},
        {"question": "", "options": ["a", "b"], "correctAnswer": 0},
        {"question": "one option", "options": ["a"], "correctAnswer": 0},
        "not an object",
    ]

    questions = normalize_questions(items, "READING_PART5", "BEGINNER")

    assert len(questions) == 1
    assert questions[0]["correctAnswer"] == 3
    assert questions[0]["difficulty"] == "BEGINNER"


def test_generate_without_provider():
    with pytest.raises(AIProviderNotConfigured):
        generate_questions(None, "READING_PART5", "BEGINNER", 1)


def test_generate_trims_extra_questions():
    reply = '[' + ','.join(
        '{"question": "q%d", "options": ["a", "b"], "correctAnswer": 1}' % i for i in range(4)
    ) + ']'
    provider = FakeProvider([reply])

    questions = generate_questions(provider, "READING_PART5", "BEGINNER", 2)

    assert [q["question"] for q in questions] == ["q0", "q1"]
    assert provider.calls[0]["max_tokens"] >= 1000


def test_word_definition_requires_word_field():
    provider = FakeProvider(['{"meanings": []}'])

    with pytest.raises(ValueError):
        get_word_definition(provider, "agenda")
