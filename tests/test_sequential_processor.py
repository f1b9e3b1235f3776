import asyncio

import pytest

from models.session_models import AssetRef
from services.errors import TransportError
from services.session.sequential_processor import (
    NO_QUESTIONS_STATUS,
    SequentialProcessor,
    answers_from_response,
)
from tests.fakes import FakeSolver, response_for


def test_answers_keep_image_then_question_order():
    solver = FakeSolver(
        {
            "img-1": response_for((1, "Q1", "a"), (2, "Q2", "b")),
            "img-2": response_for((3, "Q3", "c")),
        }
    )
    statuses = []
    processor = SequentialProcessor(solver, on_status=statuses.append)

    outcome = asyncio.run(processor.run(["img-1", "img-2"]))

    assert [item.spoken_text for item in outcome.answers] == [
        "Question 1. Q1 Answer: a.",
        "Question 2. Q2 Answer: b.",
        "Question 3. Q3 Answer: c.",
    ]
    assert [item.source_image for item in outcome.answers] == ["img-1", "img-1", "img-2"]
    assert outcome.processed == 2
    assert statuses[-1] == "Answers ready (3)."
    assert solver.calls == ["img-1", "img-2"]
    assert solver.max_in_flight == 1


def test_direct_capture_format_speaks_answer_only():
    response = response_for((5, "Which is larger?", " 7 "))

    items = answers_from_response("img", response, include_question=False)

    assert items[0].spoken_text == "Question 5. 7"


def test_part_label_and_trimmed_explanation():
    response = response_for((2, "Find the mean", "4"))
    response.questions[0].part = "b"
    response.questions[0].explanation = "  Sum over count.  "

    items = answers_from_response("img", response)

    assert items[0].spoken_text == "Question 2 part b. Find the mean Answer: 4."
    assert items[0].explanation_text == "Sum over count."


def test_failed_items_are_skipped_without_aborting():
    solver = FakeSolver(
        {
            "img-1": TransportError("offline"),
            "img-2": RuntimeError("boom"),
            "img-3": response_for((1, "Q", "ok")),
        }
    )
    statuses = []
    processor = SequentialProcessor(solver, on_status=statuses.append)

    outcome = asyncio.run(processor.run(["img-1", "img-2", "img-3"]))

    assert [item.spoken_text for item in outcome.answers] == ["Question 1. Q Answer: ok."]
    assert outcome.failed == 2
    assert "Skipped photo 1: offline" in statuses
    assert "Skipped photo 2 due to AI error." in statuses
    assert statuses[-1] == "Answers ready (1)."


def test_unloadable_assets_are_skipped_silently():
    async def load(asset):
        return None if asset.asset_id == "broken" else f"img-{asset.asset_id}"

    solver = FakeSolver()
    processor = SequentialProcessor(solver, load_image=load)
    assets = [AssetRef("broken"), AssetRef("good")]

    outcome = asyncio.run(processor.run(assets))

    assert solver.calls == ["img-good"]
    assert outcome.skipped == 1
    assert len(outcome.answers) == 1


def test_no_answers_reports_terminal_status():
    solver = FakeSolver({"img": response_for((1, "Q", "   "))})
    statuses = []

    outcome = asyncio.run(SequentialProcessor(solver, on_status=statuses.append).run(["img"]))

    assert outcome.answers == []
    assert outcome.status == NO_QUESTIONS_STATUS
    assert statuses == [NO_QUESTIONS_STATUS]


def test_limit_caps_the_batch():
    solver = FakeSolver()

    asyncio.run(SequentialProcessor(solver).run(["a", "b", "c"], limit=2))

    assert solver.calls == ["a", "b"]


def test_asset_refs_need_a_loader():
    processor = SequentialProcessor(FakeSolver())

    with pytest.raises(ValueError):
        asyncio.run(processor.run([AssetRef("x")]))


def test_loader_errors_skip_the_photo_and_keep_going():
    async def load(asset):
        if asset.asset_id == "bad":
            raise RuntimeError("decode failed")
        return f"img-{asset.asset_id}"

    solver = FakeSolver()
    statuses = []
    processor = SequentialProcessor(solver, load_image=load, on_status=statuses.append)

    outcome = asyncio.run(processor.run([AssetRef("bad"), AssetRef("good")]))

    assert solver.calls == ["img-good"]
    assert outcome.skipped == 1
    assert outcome.processed == 1
    assert statuses[-1] == "Answers ready (1)."
