"""
Pydantic schemas for vocabulary endpoints.
"""
from typing import Annotated, List, Optional
from pydantic import BaseModel, Field

Tag = Annotated[str, Field(min_length=1, max_length=50)]


class VocabularyCreateRequest(BaseModel):
    """Request schema for adding a word."""
    word: str = Field(..., min_length=1, max_length=100)
    context: Optional[str] = Field(None, max_length=500, description="Sentence the word appeared in")
    source_type: str = Field("manual", alias="sourceType", pattern="^(practice|review|manual)$")
    tags: List[Tag] = Field(default_factory=list, max_length=20)
    language: str = Field("en", pattern="^(en|zh|auto)$")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {"word": "itinerary", "context": "Please review the attached itinerary.", "sourceType": "practice"}
        }


class VocabularyUpdateRequest(BaseModel):
    """Request schema for editing a saved word."""
    notes: Optional[str] = Field(None, max_length=1000)
    mastered: Optional[bool] = None
    tags: Optional[List[Tag]] = Field(None, max_length=20)


class VocabularyReviewRequest(BaseModel):
    """Review outcome. difficulty: 0 = trivial, 5 = very hard."""
    correct: bool
    difficulty: int = Field(3, ge=0, le=5)


class DefinitionLookupRequest(BaseModel):
    """Request schema for a one-off definition lookup."""
    word: str = Field(..., min_length=1, max_length=100)
    context: Optional[str] = Field(None, max_length=500)
    language: str = Field("en", pattern="^(en|zh|auto)$")


class VocabularyImportRequest(BaseModel):
    """Request schema for bulk import."""
    words: List[str] = Field(..., min_length=1, max_length=200)
    source_type: str = Field("manual", alias="sourceType", pattern="^(practice|review|manual)$")
    language: str = Field("en", pattern="^(en|zh|auto)$")

    class Config:
        populate_by_name = True
