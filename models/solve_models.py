"""Structured answers returned by the solve service."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

FALLBACK_NOTE = "Unparsed fallback: answer taken directly from the assistant reply."
RETAKE_ANSWER = "Received an unexpected server format. Please retake a clear photo."


class SolvedQuestion(BaseModel):
    """One (sub-)question and its answer."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    number: str = "1"
    part: Optional[str] = None
    question: str = Field(
        default="",
        validation_alias=AliasChoices("questionText", "question"),
        serialization_alias="questionText",
    )
    answer: str = Field(
        default="",
        validation_alias=AliasChoices("answerText", "answer"),
        serialization_alias="answerText",
    )
    explanation: Optional[str] = None
    check_expression: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("checkExpression", "check_expression"),
        serialization_alias="checkExpression",
    )
    note: Optional[str] = Field(default=None, validation_alias=AliasChoices("note", "reason"))

    @field_validator("number", mode="before")
    @classmethod
    def _number_as_text(cls, value: Any) -> str:
        if value is None:
            return "1"
        return str(value).strip() or "1"

    @field_validator("question", "answer", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("part", mode="before")
    @classmethod
    def _part_as_text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @property
    def label(self) -> str:
        """Spoken label such as ``Question 2 part b``."""
        part = (self.part or "").strip()
        if part:
            return f"Question {self.number} part {part}"
        return f"Question {self.number}"


class QuestionsResponse(BaseModel):
    """Top-level ``{"questions": [...]}`` payload."""

    model_config = ConfigDict(extra="ignore")

    questions: List[SolvedQuestion]

    @property
    def is_fallback(self) -> bool:
        return len(self.questions) == 1 and self.questions[0].note == FALLBACK_NOTE

    @classmethod
    def fallback(cls, question_text: str, raw_reply: str) -> "QuestionsResponse":
        """Wrap an unparseable reply as a single answered question; a blank reply asks for a retake."""
        return cls(
            questions=[
                SolvedQuestion(
                    number="?",
                    part=None,
                    question=question_text,
                    answer=raw_reply if raw_reply.strip() else RETAKE_ANSWER,
                    note=FALLBACK_NOTE,
                )
            ]
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
