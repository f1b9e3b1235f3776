import asyncio

import httpx
import openai
import pytest
from PIL import Image

from services.errors import EmptyInput, TransportError
from models.solve_models import RETAKE_ANSWER
from services.openai.solve_service import SolveOrchestrator
from services.session.sequential_processor import answers_from_response
from tests.fakes import FakeOpenAI, FakeRecognizer, line, questions_json


def _system_text(call):
    return call["input"][0]["content"][0]["text"]


def test_valid_reply_on_first_attempt_drops_blank_answers():
    client = FakeOpenAI([questions_json((1, "What is the mean?", "12"), (2, "What is the mode?", "  "))])
    orchestrator = SolveOrchestrator(client, model="test-model")

    response = asyncio.run(orchestrator.solve_text("1. What is the mean? 2. What is the mode?"))

    assert len(response.questions) == 2
    assert len(client.responses.calls) == 1
    call = client.responses.calls[0]
    assert call["model"] == "test-model"
    assert call["temperature"] == 0
    assert call["text"] == {"format": {"type": "json_object"}}
    assert orchestrator.last_usage == {"input_tokens": 12, "output_tokens": 7}

    items = answers_from_response("img", response)
    assert [item.spoken_text for item in items] == ["Question 1. What is the mean? Answer: 12."]


def test_reply_wrapped_in_prose_is_accepted():
    reply = "Here is the JSON you asked for:\n" + questions_json((3, "Find the IQR", "8")) + "\nGood luck!"
    orchestrator = SolveOrchestrator(FakeOpenAI([reply]))

    response = asyncio.run(orchestrator.solve_text("Find the IQR"))

    assert response.questions[0].answer == "8"
    assert not response.is_fallback


def test_second_attempt_uses_stricter_prompt():
    client = FakeOpenAI(["```json\nnot really json\n```", questions_json((1, "Q", "A"))])
    orchestrator = SolveOrchestrator(client)

    response = asyncio.run(orchestrator.solve_text("Q"))

    assert response.questions[0].answer == "A"
    first, second = client.responses.calls
    assert "previous attempt returned invalid JSON" not in _system_text(first)
    assert "previous attempt returned invalid JSON" in _system_text(second)


def test_two_parse_failures_return_single_fallback_item():
    client = FakeOpenAI(["not json at all", '{"questions": []}'])
    orchestrator = SolveOrchestrator(client)

    response = asyncio.run(orchestrator.solve_text("What is 6 x 7?"))

    assert response.is_fallback
    assert len(response.questions) == 1
    assert response.questions[0].question == "What is 6 x 7?"
    assert response.questions[0].answer == '{"questions": []}'
    assert len(client.responses.calls) == 2

    items = answers_from_response("img", response)
    assert len(items) == 1
    assert items[0].spoken_text == 'Question ?. What is 6 x 7? Answer: {"questions": []}.'


def test_transport_error_is_raised_without_retry():
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    client = FakeOpenAI([openai.APIConnectionError(request=request)])
    orchestrator = SolveOrchestrator(client)

    with pytest.raises(TransportError):
        asyncio.run(orchestrator.solve_text("What is 1 + 1?"))
    assert len(client.responses.calls) == 1


def test_blank_replies_fall_back_to_a_retake_answer():
    client = FakeOpenAI(["", "   "])
    orchestrator = SolveOrchestrator(client)

    response = asyncio.run(orchestrator.solve_text("What is 6 x 7?"))

    assert response.is_fallback
    assert response.questions[0].answer == RETAKE_ANSWER
    items = answers_from_response("img", response)
    assert [item.spoken_text for item in items] == [f"Question ?. What is 6 x 7? Answer: {RETAKE_ANSWER}."]


def test_transport_error_on_strict_retry_is_raised_without_fallback():
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    client = FakeOpenAI(["not json", openai.APIConnectionError(request=request)])
    orchestrator = SolveOrchestrator(client)

    with pytest.raises(TransportError):
        asyncio.run(orchestrator.solve_text("What is 1 + 1?"))
    assert len(client.responses.calls) == 2


def test_blank_text_is_empty_input():
    orchestrator = SolveOrchestrator(FakeOpenAI([]))

    with pytest.raises(EmptyInput):
        asyncio.run(orchestrator.solve_text("   "))


def test_image_goes_through_ocr_and_block_selection():
    recognizer = FakeRecognizer(
        [
            line("ChatGPT can make mistakes.", 0.05),
            line("2. What is the median of 3, 9, 4?", 0.6),
        ]
    )
    client = FakeOpenAI([questions_json((2, "What is the median of 3, 9, 4?", "4"))])
    orchestrator = SolveOrchestrator(client, recognizer=recognizer)

    response = asyncio.run(orchestrator.solve(Image.new("RGB", (20, 20), "white")))

    assert response.questions[0].answer == "4"
    user_text = client.responses.calls[0]["input"][1]["content"][0]["text"]
    assert "2. What is the median of 3, 9, 4?" in user_text
    assert "ChatGPT" not in user_text


def test_image_without_text_is_empty_input():
    orchestrator = SolveOrchestrator(FakeOpenAI([]), recognizer=FakeRecognizer([]))

    with pytest.raises(EmptyInput):
        asyncio.run(orchestrator.solve_image(Image.new("RGB", (20, 20), "white")))


def test_client_is_required():
    with pytest.raises(ValueError):
        SolveOrchestrator(None)
