"""Line-level OCR built on Tesseract word boxes."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Tuple

import pytesseract
from PIL import Image

from services.ocr.text_block_selector import BoundingBox, RecognizedLine

LOGGER = logging.getLogger(__name__)


class TesseractLineRecognizer:
    """Recognize text lines with normalized boxes (origin bottom-left)."""

    def __init__(self, *, psm: int = 3, lang: str = "eng") -> None:
        self.config = f"--oem 3 --psm {psm}"
        self.lang = lang

    async def recognize(self, image: Image.Image) -> List[RecognizedLine]:
        """Run OCR in a worker thread so the session loop is not blocked."""
        return await asyncio.to_thread(self.recognize_sync, image)

    def recognize_sync(self, image: Image.Image) -> List[RecognizedLine]:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        width, height = image.size
        if not width or not height:
            return []

        data = pytesseract.image_to_data(
            image, lang=self.lang, config=self.config, output_type=pytesseract.Output.DICT
        )
        return self._group_lines(data, width, height)

    @staticmethod
    def _group_lines(data: Dict[str, list], width: int, height: int) -> List[RecognizedLine]:
        grouped: Dict[Tuple[int, int, int], List[int]] = {}
        for idx, text in enumerate(data.get("text", [])):
            if not text or not text.strip():
                continue
            try:
                conf = float(data["conf"][idx])
            except (KeyError, ValueError, TypeError):
                conf = -1.0
            if conf < 0:
                continue
            key = (data["block_num"][idx], data["par_num"][idx], data["line_num"][idx])
            grouped.setdefault(key, []).append(idx)

        lines: List[RecognizedLine] = []
        for indices in grouped.values():
            words = [data["text"][i].strip() for i in indices]
            left = min(data["left"][i] for i in indices)
            top = min(data["top"][i] for i in indices)
            right = max(data["left"][i] + data["width"][i] for i in indices)
            bottom = max(data["top"][i] + data["height"][i] for i in indices)
            confidence = sum(float(data["conf"][i]) for i in indices) / (100.0 * len(indices))
            box = BoundingBox(
                x=left / width,
                y=1.0 - bottom / height,
                width=(right - left) / width,
                height=(bottom - top) / height,
            )
            lines.append(RecognizedLine(text=" ".join(words), confidence=confidence, box=box))

        LOGGER.debug("Recognized %d OCR lines", len(lines))
        return lines
