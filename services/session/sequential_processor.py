"""Solve a batch of photos strictly one at a time, in order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence

from models.session_models import AnswerItem, AssetRef
from models.solve_models import QuestionsResponse
from services.errors import AssistantError

LOGGER = logging.getLogger(__name__)

NO_QUESTIONS_STATUS = "Finished processing, but no readable questions were found."


class Solver(Protocol):
    def solve(self, source: Any) -> Awaitable[QuestionsResponse]: ...


@dataclass
class ProcessingOutcome:
    answers: List[AnswerItem] = field(default_factory=list)
    processed: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def status(self) -> str:
        if not self.answers:
            return NO_QUESTIONS_STATUS
        return f"Answers ready ({len(self.answers)})."


def answers_from_response(
    image: Any, response: QuestionsResponse, *, include_question: bool = True
) -> List[AnswerItem]:
    """Flatten a solve response into spoken items, dropping blank answers."""
    items: List[AnswerItem] = []
    for question in response.questions:
        answer_text = question.answer.strip()
        if not answer_text:
            continue
        explanation = (question.explanation or "").strip()
        if include_question and question.question.strip():
            spoken = f"{question.label}. {question.question.strip()} Answer: {answer_text}."
        else:
            spoken = f"{question.label}. {answer_text}"
        items.append(AnswerItem(source_image=image, spoken_text=spoken, explanation_text=explanation))
    return items


class SequentialProcessor:
    """Drive photos through the solver without ever overlapping requests.

    Args:
        solver: Object with an async ``solve(image)``.
        load_image: Async loader for ``AssetRef`` items; returns None on failure.
        include_question: Speak the question text before each answer.
        on_status: Called with human-readable progress messages.
    """

    def __init__(
        self,
        solver: Solver,
        *,
        load_image: Optional[Callable[[AssetRef], Awaitable[Any]]] = None,
        include_question: bool = True,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.solver = solver
        self.load_image = load_image
        self.include_question = include_question
        self.on_status = on_status

    async def run(self, items: Sequence[Any], limit: Optional[int] = None) -> ProcessingOutcome:
        outcome = ProcessingOutcome()
        batch = list(items if limit is None else items[:limit])
        if self.load_image is None and any(isinstance(item, AssetRef) for item in batch):
            raise ValueError("load_image is required to process asset references.")
        for position, item in enumerate(batch, start=1):
            try:
                image = await self._load(item)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.error("Could not load photo %d: %s", position, exc)
                image = None
            if image is None:
                outcome.skipped += 1
                continue

            try:
                response = await self.solver.solve(image)
            except AssistantError as exc:
                LOGGER.error("Error on photo %d: %s", position, exc)
                outcome.failed += 1
                self._report(f"Skipped photo {position}: {exc.message}")
                continue
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.exception("Unexpected error on photo %d", position)
                outcome.failed += 1
                self._report(f"Skipped photo {position} due to AI error.")
                continue

            outcome.processed += 1
            outcome.answers.extend(
                answers_from_response(image, response, include_question=self.include_question)
            )

        self._report(outcome.status)
        return outcome

    async def _load(self, item: Any) -> Any:
        if not isinstance(item, AssetRef):
            return item
        return await self.load_image(item)

    def _report(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)
