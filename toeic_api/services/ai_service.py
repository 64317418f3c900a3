"""
AI service layer for question generation, tutoring chat, explanations and
word definitions.

Every call goes through an LLMProvider. Provider failures surface as
AIProviderError; answers that cannot be turned into the expected shape
surface as QuestionGenerationError. Nothing is retried here.
"""
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from toeic_api.core.errors import AIProviderNotConfigured, QuestionGenerationError
from toeic_api.llm.provider import LLMProvider
from toeic_api.llm.router import get_model_for_feature, get_temperature_for_feature
from toeic_api.services.prompt_templates import (
    CHAT_SYSTEM_PROMPT,
    SECTION_CATEGORIES,
    build_chat_context,
    build_explanation_prompt,
    build_question_prompt,
    build_word_definition_prompt,
)

logger = logging.getLogger(__name__)

ANSWER_LETTERS = {"A": 0, "B": 1, "C": 2, "D": 3}
CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


# ============================================
# Pydantic Response Models
# ============================================

class GeneratedQuestion(BaseModel):
    """A question in the shape the frontend renders."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    category: str
    difficulty: str
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., alias="correctAnswer", ge=0)
    explanation: str = ""
    passage: Optional[str] = None
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @model_validator(mode="after")
    def check_answer_in_range(self):
        if self.correct_answer >= len(self.options):
            raise ValueError("correctAnswer is out of range for options")
        return self


class WordDefinitionEntry(BaseModel):
    definition: str
    example: Optional[str] = None


class WordMeaning(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    part_of_speech: str = Field(..., alias="partOfSpeech")
    definitions: List[WordDefinitionEntry] = Field(default_factory=list)


class WordDefinition(BaseModel):
    word: str
    phonetic: Optional[str] = None
    definition: Optional[str] = None
    meanings: List[WordMeaning] = Field(default_factory=list)


# ============================================
# Response parsing
# ============================================

def strip_code_fences(text: str) -> str:
    return CODE_FENCE_RE.sub("", text.strip()).strip()


def extract_json_array(text: str) -> List[Any]:
    """
    Pull the JSON array out of a model answer.

    Accepts bare arrays, arrays wrapped in prose or code fences, and
    {"questions": [...]} objects.

    Raises:
        QuestionGenerationError: no parseable array
    """
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("["), cleaned.rfind("]")
        if start == -1 or end <= start:
            raise QuestionGenerationError("No JSON array in provider response")
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise QuestionGenerationError(f"Malformed JSON in provider response: {e}")

    if isinstance(parsed, dict) and isinstance(parsed.get("questions"), list) and "document" not in parsed:
        parsed = parsed["questions"]
    if not isinstance(parsed, list):
        raise QuestionGenerationError("Provider response is not a JSON array")
    return parsed


def extract_json_object(text: str) -> Dict[str, Any]:
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object in provider response")
        parsed = json.loads(cleaned[start:end + 1])
    if not isinstance(parsed, dict):
        raise ValueError("Provider response is not a JSON object")
    return parsed


def normalize_answer(value: Any) -> Optional[int]:
    """Map 0-3, "2", "C" or "(C)" to an option index."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, list) and len(value) == 1:
        return normalize_answer(value[0])
    if isinstance(value, str):
        stripped = value.strip().strip("().").upper()
        if stripped in ANSWER_LETTERS:
            return ANSWER_LETTERS[stripped]
        if stripped.isdigit():
            return int(stripped)
    return None


def _expand_documents(items: List[Any]) -> List[Dict[str, Any]]:
    """Flatten Part 6 {"document", "questions"} items into one item per blank."""
    expanded = []
    for item in items:
        if isinstance(item, dict) and item.get("document") and isinstance(item.get("questions"), list):
            for sub in item["questions"]:
                if isinstance(sub, dict):
                    expanded.append({
                        **sub,
                        "passage": item["document"],
                        "category": item.get("category") or sub.get("category"),
                        "difficulty": sub.get("difficulty") or item.get("difficulty"),
                    })
        else:
            expanded.append(item)
    return expanded


def normalize_questions(items: List[Any], question_type: str, difficulty: str) -> List[Dict[str, Any]]:
    """Validate provider items; invalid ones are dropped and logged."""
    batch = int(time.time() * 1000)
    questions = []
    for index, item in enumerate(_expand_documents(items)):
        if not isinstance(item, dict):
            logger.warning(f"Dropping non-object question item at index {index}")
            continue
        answer = normalize_answer(item.get("correctAnswer", item.get("correct_answer")))
        try:
            question = GeneratedQuestion(
                id=str(item.get("id") or f"q_{batch}_{index}"),
                type=question_type,
                category=item.get("category") or SECTION_CATEGORIES.get(question_type, question_type),
                difficulty=item.get("difficulty") or difficulty,
                question=str(item.get("question") or "").strip(),
                options=[str(opt) for opt in item.get("options") or []],
                correctAnswer=answer if answer is not None else -1,
                explanation=str(item.get("explanation") or ""),
                passage=item.get("passage"),
                audioUrl=item.get("audioUrl"),
                imageUrl=item.get("imageUrl"),
            )
        except ValidationError as e:
            logger.warning(f"Dropping invalid question at index {index}: {e.errors()[0].get('msg')}")
            continue
        questions.append(question.model_dump(by_alias=True))
    return questions


# ============================================
# AI Service Functions
# ============================================

def _require_provider(provider: Optional[LLMProvider]) -> LLMProvider:
    if provider is None:
        raise AIProviderNotConfigured("AI service is not configured")
    return provider


def _complete(provider: Optional[LLMProvider], feature: str, messages: List[Dict[str, str]], max_tokens: int = 2000) -> str:
    provider = _require_provider(provider)
    started = time.perf_counter()
    response = provider.chat(
        messages=messages,
        model=get_model_for_feature(feature),
        temperature=get_temperature_for_feature(feature),
        max_tokens=max_tokens,
    )
    logger.info(
        f"AI call completed: feature={feature}, model={response.model}, tokens_in={response.tokens_in}, "
        f"tokens_out={response.tokens_out}, duration_ms={(time.perf_counter() - started) * 1000:.0f}"
    )
    return response.content


def generate_questions(
    provider: Optional[LLMProvider],
    question_type: str,
    difficulty: str,
    count: int,
    topic: Optional[str] = None,
    custom_prompt: Optional[str] = None,
    language: str = "en",
) -> List[Dict[str, Any]]:
    """
    Generate exactly `count` questions.

    Raises:
        AIProviderError: provider failed or timed out
        QuestionGenerationError: response unusable or fewer than `count` valid questions
    """
    prompt = build_question_prompt(question_type, difficulty, count, topic, custom_prompt, language)
    content = _complete(
        provider,
        "question_generation",
        [{"role": "user", "content": prompt}],
        max_tokens=min(8000, 600 * count + 500),
    )

    questions = normalize_questions(extract_json_array(content), question_type, difficulty)
    if len(questions) < count:
        logger.warning(f"Question generation short: type={question_type}, requested={count}, valid={len(questions)}")
        raise QuestionGenerationError(f"Expected {count} questions, got {len(questions)} valid")

    logger.info(f"Questions generated: type={question_type}, difficulty={difficulty}, count={count}")
    return questions[:count]


def chat_reply(
    provider: Optional[LLMProvider],
    history: List[Dict[str, str]],
    message: str,
    question_context: Optional[Dict] = None,
) -> str:
    """Tutor reply given prior turns ({"role", "content"} dicts, oldest first)."""
    messages = [{"role": "system", "content": CHAT_SYSTEM_PROMPT}]
    context = build_chat_context(question_context)
    if context:
        messages.append({"role": "system", "content": context})
    messages.extend(history[-20:])
    messages.append({"role": "user", "content": message})
    return _complete(provider, "chat", messages, max_tokens=1000).strip()


def explain_question(
    provider: Optional[LLMProvider],
    question: str,
    options: List[str],
    correct_answer: int,
    user_answer: Optional[int] = None,
) -> str:
    prompt = build_explanation_prompt(question, options, correct_answer, user_answer)
    return _complete(provider, "explanation", [{"role": "user", "content": prompt}], max_tokens=800).strip()


def get_word_definition(
    provider: Optional[LLMProvider],
    word: str,
    context: Optional[str] = None,
    language: str = "en",
) -> Dict[str, Any]:
    """
    Dictionary entry for a word.

    Raises:
        AIProviderError: provider failed
        ValueError: response was not a usable entry
    """
    prompt = build_word_definition_prompt(word, context, language)
    content = _complete(provider, "word_definition", [{"role": "user", "content": prompt}], max_tokens=1200)
    try:
        entry = WordDefinition.model_validate(extract_json_object(content))
    except (ValidationError, json.JSONDecodeError) as e:
        raise ValueError(f"Unusable definition for '{word}': {e}")
    return entry.model_dump(by_alias=True)
