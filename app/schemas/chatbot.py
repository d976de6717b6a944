from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ValidateFieldRequest(BaseModel):
    field: Optional[str] = None
    value: Any = None
    validationType: Optional[str] = None


class ConversationRequest(BaseModel):
    """Completed chatbot conversation; extra keys are kept as sent."""

    model_config = ConfigDict(extra="allow")

    responses: Dict[str, Any] = {}
    completed: bool = False


class FeedbackRequest(BaseModel):
    rating: Optional[int] = None
    feedback: Optional[str] = None
    conversationId: Optional[str] = None


class GermanProgramRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    age: Optional[Any] = None
    email: Optional[str] = None
    purpose: Optional[str] = None
    passport: Optional[str] = None
    resume_upload: Optional[str] = None
    qualification: Optional[str] = None
    experience: Optional[str] = None
    germanLanguage: Optional[str] = None
    continueProgram: Optional[str] = None


class MeetingRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    email: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
