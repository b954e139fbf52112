"""Request models of the local session API."""
from typing import Literal

from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    """Model for opening a quiz session."""

    kind: Literal["lesson", "random", "template"] = "lesson"
    lessonId: int | None = None
    templateId: int | None = None
    questionCount: int | None = None
    language: str | None = None
    useCache: bool = True


class AnswerRequest(BaseModel):
    optionIndex: int = Field(..., ge=0)


class QuestionIndexRequest(BaseModel):
    index: int = Field(..., ge=0)


class StartRequest(BaseModel):
    questionCount: int


class LocaleRequest(BaseModel):
    language: str = Field(..., min_length=1)
