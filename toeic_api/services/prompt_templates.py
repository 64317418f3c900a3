"""
Prompt templates for the AI features.

Question prompts are per exam section; everything else is a single template.
All templates ask for bare JSON (no markdown) where structured output is needed.
"""
from typing import Dict, List, Optional

SECTION_DESCRIPTIONS: Dict[str, str] = {
    "LISTENING_PART1": "Listening Part 1 (photographs): four statements describing a picture",
    "LISTENING_PART2": "Listening Part 2 (question-response): a spoken question with three possible responses",
    "LISTENING_PART3": "Listening Part 3 (conversations): a short workplace conversation followed by a question",
    "LISTENING_PART4": "Listening Part 4 (talks): a short announcement or talk followed by a question",
    "READING_PART5": "Reading Part 5 (incomplete sentences): one sentence with a blank and four options",
    "READING_PART6": "Reading Part 6 (text completion): a short business text with four blanks",
    "READING_PART7": "Reading Part 7 (reading comprehension): a passage followed by a question",
}

SECTION_CATEGORIES: Dict[str, str] = {
    "LISTENING_PART1": "Part 1 - Photographs",
    "LISTENING_PART2": "Part 2 - Question-Response",
    "LISTENING_PART3": "Part 3 - Conversations",
    "LISTENING_PART4": "Part 4 - Talks",
    "READING_PART5": "Part 5 - Incomplete Sentences",
    "READING_PART6": "Part 6 - Text Completion",
    "READING_PART7": "Part 7 - Reading Comprehension",
}

DIFFICULTY_DESCRIPTIONS: Dict[str, str] = {
    "UNDER_500": "below 500 points (basic vocabulary, simple grammar)",
    "LEVEL_500_600": "500-600 points",
    "LEVEL_600_700": "600-700 points",
    "LEVEL_700_800": "700-800 points",
    "OVER_800": "above 800 points (nuanced vocabulary, complex structures)",
    "BEGINNER": "beginner, 400-600 points",
    "INTERMEDIATE": "intermediate, 600-800 points",
    "ADVANCED": "advanced, 800-900 points",
}

LANGUAGE_NAMES: Dict[str, str] = {"en": "English", "zh": "Simplified Chinese", "ja": "Japanese"}

QUESTION_FIELDS = """{
  "id": "unique id",
  "type": "%(type)s",
  "difficulty": "%(difficulty)s",
  "question": "question text",
  "options": ["option A", "option B", "option C", "option D"],
  "correctAnswer": 0,
  "explanation": "why the answer is correct and the others are not",
  "passage": "passage or transcript, when the section has one"
}"""

PART6_FIELDS = """{
  "document": "the full text with blanks marked [1], [2], [3], [4]",
  "category": "Part 6 - Text Completion",
  "questions": [
    {"question": "Choose the best option for blank [1].", "options": ["A", "B", "C", "D"], "correctAnswer": 0, "explanation": "..."}
  ]
}"""


def build_question_prompt(
    question_type: str,
    difficulty: str,
    count: int,
    topic: Optional[str] = None,
    custom_prompt: Optional[str] = None,
    language: str = "en",
) -> str:
    section = SECTION_DESCRIPTIONS.get(question_type, question_type)
    level = DIFFICULTY_DESCRIPTIONS.get(difficulty, difficulty)
    explanation_language = LANGUAGE_NAMES.get(language, "English")

    if question_type == "READING_PART6":
        documents = -(-count // 4)
        lines = [
            "You are an expert TOEIC item writer.",
            f"Write {documents} {section} document(s), each with exactly 4 blanks and 4 questions.",
            f"Target level: {level}.",
            "Return a JSON array of documents, each shaped like:",
            PART6_FIELDS,
        ]
    else:
        lines = [
            "You are an expert TOEIC item writer.",
            f"Write exactly {count} {section} question(s).",
            f"Target level: {level}.",
            "Return a JSON array where each item is shaped like:",
            QUESTION_FIELDS % {"type": question_type, "difficulty": difficulty},
        ]

    lines.append("correctAnswer is the zero-based index of the correct option (0=A, 1=B, 2=C, 3=D).")
    lines.append("Spread the correct answers evenly across A, B, C and D.")
    lines.append(f"Write explanations in {explanation_language}; everything else in English.")
    if topic:
        lines.append(f"Topic: {topic}")
    if custom_prompt:
        lines.append(f"Additional requirements: {custom_prompt}")
    lines.append("Return only the JSON array. No markdown code fences, no commentary.")
    return "\n".join(lines)


CHAT_SYSTEM_PROMPT = (
    "You are a friendly TOEIC tutor. Answer questions about English grammar, vocabulary, "
    "TOEIC strategy and the practice question in context. Keep answers concise and practical, "
    "and reply in the language the student writes in."
)


def build_chat_context(question_context: Optional[Dict]) -> Optional[str]:
    if not question_context:
        return None
    parts = ["The student is working on this question:"]
    if question_context.get("question"):
        parts.append(f"Question: {question_context['question']}")
    options = question_context.get("options") or []
    for index, option in enumerate(options):
        parts.append(f"{'ABCD'[index] if index < 4 else index}. {option}")
    if question_context.get("correctAnswer") is not None:
        parts.append(f"Correct answer index: {question_context['correctAnswer']}")
    if question_context.get("userAnswer") is not None:
        parts.append(f"Student's answer index: {question_context['userAnswer']}")
    return "\n".join(parts)


def build_explanation_prompt(question: str, options: List[str], correct_answer: int, user_answer: Optional[int]) -> str:
    option_lines = "\n".join(f"{'ABCD'[i] if i < 4 else i}. {opt}" for i, opt in enumerate(options))
    lines = [
        "Explain this TOEIC question to a learner.",
        f"Question: {question}",
        option_lines,
        f"Correct answer: {'ABCD'[correct_answer] if 0 <= correct_answer < 4 else correct_answer}",
    ]
    if user_answer is not None and user_answer != correct_answer:
        lines.append(f"The learner chose {'ABCD'[user_answer] if 0 <= user_answer < 4 else user_answer}; explain why it is wrong.")
    lines.append("Focus on why the correct option fits and what is wrong with the others. Keep it under 200 words.")
    return "\n".join(lines)


def build_word_definition_prompt(word: str, context: Optional[str], language: str) -> str:
    lines = [
        f'Give a learner\'s dictionary entry for the English word "{word}" as used in business English and the TOEIC.',
    ]
    if context:
        lines.append(f"It appeared in this sentence: {context}")
    target = {"zh": "Simplified Chinese", "en": "English"}.get(language, "English")
    lines.extend([
        f"Write definitions in {target} and example sentences in English.",
        "Return JSON shaped like:",
        '{"word": "...", "phonetic": "/.../", "definition": "one-line summary",'
        ' "meanings": [{"partOfSpeech": "noun", "definitions": [{"definition": "...", "example": "..."}]}]}',
        "Give the 2-3 most common parts of speech with 1-2 definitions each.",
        "Return only the JSON object. No markdown code fences.",
    ])
    return "\n".join(lines)
