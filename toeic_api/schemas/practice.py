"""
Pydantic schemas for practice endpoints.
"""
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from toeic_api.core import config


class QuestionType(str, Enum):
    LISTENING_PART1 = "LISTENING_PART1"
    LISTENING_PART2 = "LISTENING_PART2"
    LISTENING_PART3 = "LISTENING_PART3"
    LISTENING_PART4 = "LISTENING_PART4"
    READING_PART5 = "READING_PART5"
    READING_PART6 = "READING_PART6"
    READING_PART7 = "READING_PART7"


class Difficulty(str, Enum):
    UNDER_500 = "UNDER_500"
    LEVEL_500_600 = "LEVEL_500_600"
    LEVEL_600_700 = "LEVEL_600_700"
    LEVEL_700_800 = "LEVEL_700_800"
    OVER_800 = "OVER_800"
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class QuestionGenerationRequest(BaseModel):
    """Request schema for AI question generation."""
    type: QuestionType = Field(..., description="TOEIC section")
    difficulty: Difficulty = Field(..., description="Target score band")
    count: int = Field(
        ...,
        ge=config.QUESTION_COUNT_MIN,
        le=config.QUESTION_COUNT_MAX,
        description="Number of questions to generate",
    )
    topic: Optional[str] = Field(None, max_length=200, description="Optional topic")
    custom_prompt: Optional[str] = Field(None, alias="customPrompt", max_length=500, description="Extra instructions")
    language: str = Field("en", pattern="^(en|zh|ja)$", description="Explanation language")
    time_limit: Optional[int] = Field(None, alias="timeLimit", ge=0, description="Time limit in seconds")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "type": "READING_PART5",
                "difficulty": "LEVEL_600_700",
                "count": 5,
                "topic": "office communication",
                "language": "en"
            }
        }


class AnswerSubmission(BaseModel):
    """One answered question."""
    question_id: str = Field(..., alias="questionId", min_length=1)
    user_answer: Optional[Any] = Field(None, alias="userAnswer", description="Chosen option index or text")
    is_correct: Optional[bool] = Field(None, alias="isCorrect")
    time_spent: int = Field(0, alias="timeSpent", ge=0, description="Seconds spent on the question")
    source: Optional[str] = Field(None, pattern="^(real|ai_pool|realtime)$", description="Where the question came from")

    class Config:
        populate_by_name = True


class PracticeSubmissionRequest(BaseModel):
    """Request schema for submitting a finished practice session."""
    session_id: str = Field(..., alias="sessionId", min_length=1)
    questions: List[AnswerSubmission] = Field(..., min_length=1)
    question_type: Optional[QuestionType] = Field(None, alias="questionType")
    difficulty: Optional[Difficulty] = None
    total_time: Optional[int] = Field(None, alias="totalTime", ge=0)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "sessionId": "practice_1718000000000",
                "questionType": "READING_PART5",
                "difficulty": "LEVEL_600_700",
                "questions": [
                    {"questionId": "q_1", "userAnswer": 2, "isCorrect": True, "timeSpent": 30, "source": "realtime"}
                ]
            }
        }

    def answers(self) -> List[Dict[str, Any]]:
        return [q.model_dump(by_alias=True) for q in self.questions]
