"""Prompt helpers for the worksheet solve call."""

from __future__ import annotations

_JSON_SHAPE = """{
  "questions": [
    {
      "number": "1",
      "part": "a",
      "questionText": "Full text of the sub-question, including the shared stem",
      "answerText": "Short final numeric or word answer",
      "explanation": "1-3 concise sentences, or null",
      "checkExpression": "Simple expression that verifies the answer, or null"
    }
  ]
}"""

_JSON_ONLY = (
    "Output ONLY raw JSON. No markdown, no backticks, no explanation text, no comments. "
    "The first character MUST be '{' and the last character MUST be '}'."
)


def build_system_prompt(strict: bool = False) -> str:
    """Return the solve instruction; ``strict`` is used after an unparseable reply."""
    base = (
        "You are an educational assistant that receives OCR text extracted from a photo of a "
        "worksheet, web page, or laptop screen. The text may include UI elements such as buttons, "
        "hints, or unrelated messages; ignore them.\n\n"
        "Consider the entire block together: a shared stem followed by sub-parts (a), (b), (c) that "
        "all refer back to it. Identify each question number and sub-part, reuse information from "
        "the stem, and answer every one of them. If the OCR is slightly messy, infer the intended "
        "values and answer anyway. For statistics questions with a mean, standard deviation and "
        "threshold, compute the probability and give percentages as numbers (for example \"2.3%\").\n\n"
        "Return your result with this exact shape:\n"
        f"{_JSON_SHAPE}\n\n"
        "- \"number\": the question number if present, otherwise \"1\".\n"
        "- \"part\": null if there is no part label.\n"
        "- \"answerText\": always a non-empty final answer, not the steps.\n"
        "Do not include any additional keys."
    )
    if not strict:
        return f"{base}\n\n{_JSON_ONLY}"
    return (
        f"{base}\n\n"
        "The previous attempt returned invalid JSON. This time you MUST follow these rules:\n"
        "- Do not wrap the JSON in ```json or ``` blocks.\n"
        "- Do not add any extra text before or after the JSON.\n"
        f"- {_JSON_ONLY}"
    )


def build_user_prompt(problem_text: str) -> str:
    return f"OCR text from the photo:\n{problem_text.strip()}"
