"""Session domain models for photo acquisition and answer read-out."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class PhotoSource(str, Enum):
    """Where a session gets its photos from."""

    GLASSES_SYNC = "glasses_sync"
    DIRECT_CAPTURE = "direct_capture"

    @property
    def display_name(self) -> str:
        return "Glasses Sync" if self is PhotoSource.GLASSES_SYNC else "Phone Camera"


class ReadoutState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass(frozen=True)
class AssetRef:
    """Stable reference to a captured photo; identity is ``asset_id`` only."""

    asset_id: str
    created_at: float = field(default=0.0, compare=False)
    location: Optional[str] = field(default=None, compare=False)


@dataclass
class AnswerItem:
    """A single spoken answer and the image it came from."""

    source_image: Any
    spoken_text: str
    explanation_text: str = ""


@dataclass
class AcquisitionState:
    """Detection window for the glasses sync poll."""

    first_detected_at: Optional[float] = None
    last_unprocessed_count: int = 0

    def reset(self) -> None:
        self.first_detected_at = None
        self.last_unprocessed_count = 0


@dataclass
class SessionState:
    """In-memory state of one test session."""

    session_id: str
    photo_source: PhotoSource
    start_time: float = field(default_factory=lambda: time.time())
    is_active: bool = True
    processed_ids: Set[str] = field(default_factory=set)
    captured_images: List[Any] = field(default_factory=list)


@dataclass
class SessionSnapshot:
    """Pull-based view of a session, also emitted to subscribers on change."""

    session_id: Optional[str]
    status_message: str
    is_active: bool
    is_processing: bool
    is_reading: bool
    readout_state: ReadoutState
    photo_source: Optional[PhotoSource]
    expected_count: int
    tap_window_open: bool
    tap_window_remaining: int
    captured_count: int
    answer_count: int
    current_index: int
    current_answer: str = ""
    current_explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["readout_state"] = self.readout_state.value
        data["photo_source"] = self.photo_source.value if self.photo_source else None
        return data
