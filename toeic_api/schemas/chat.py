"""
Pydantic schemas for chat endpoints.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class ChatMessageRequest(BaseModel):
    """Request schema for sending a chat message."""
    message: str = Field(..., min_length=1, max_length=2000, description="The learner's message")
    session_id: Optional[int] = Field(None, alias="sessionId", description="Existing session to continue")
    question_context: Optional[Dict[str, Any]] = Field(None, alias="questionContext", description="Question being discussed")

    class Config:
        populate_by_name = True


class ExplainQuestionRequest(BaseModel):
    """Request schema for a question explanation."""
    question: str = Field(..., min_length=1, max_length=5000)
    options: List[str] = Field(..., min_length=2, max_length=6)
    correct_answer: int = Field(..., alias="correctAnswer", ge=0)
    user_answer: Optional[int] = Field(None, alias="userAnswer", ge=0)

    class Config:
        populate_by_name = True
