import pytest

from utils.settings import AssistantSettings

ENV_NAMES = (
    "MAX_PHOTOS_PER_SESSION",
    "PHOTO_POLL_SECONDS",
    "SETTLE_SECONDS",
    "TAP_WINDOW_SECONDS",
    "READING_PACE_SECONDS",
    "EXPECTATION_RESET_SECONDS",
    "OPENAI_SOLVE_MODEL",
    "OPENAI_TTS_MODEL",
    "OPENAI_TTS_VOICE",
    "VOICE_TONE",
    "VOICE_SPEED",
    "GLASSES_SYNC_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = AssistantSettings.from_env()

    assert settings.max_photos == 10
    assert settings.poll_interval_seconds == 5.0
    assert settings.settle_seconds == 5.0
    assert settings.tap_window_seconds == 5
    assert settings.reading_pace_seconds == 2.0
    assert settings.solve_model == "gpt-4o-mini"
    assert settings.tts_voice == "alloy"
    assert settings.voice_tone == "neutral"
    assert settings.photo_sync_dir is None


def test_values_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("MAX_PHOTOS_PER_SESSION", "6")
    monkeypatch.setenv("VOICE_SPEED", "1.5")
    monkeypatch.setenv("VOICE_TONE", "Calm")
    monkeypatch.setenv("GLASSES_SYNC_DIR", str(tmp_path))

    settings = AssistantSettings.from_env()

    assert settings.max_photos == 6
    assert settings.voice_speed == 1.5
    assert settings.voice_tone == "calm"
    assert settings.photo_sync_dir == tmp_path


@pytest.mark.parametrize(
    "name, value",
    [
        ("VOICE_SPEED", "9"),
        ("VOICE_SPEED", "fast"),
        ("MAX_PHOTOS_PER_SESSION", "0"),
        ("SETTLE_SECONDS", "-1"),
        ("VOICE_TONE", "sarcastic"),
    ],
)
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError):
        AssistantSettings.from_env()


def test_sync_dir_pointing_at_a_file_is_rejected(monkeypatch, tmp_path):
    target = tmp_path / "photo.jpg"
    target.write_bytes(b"")
    monkeypatch.setenv("GLASSES_SYNC_DIR", str(target))

    with pytest.raises(RuntimeError):
        AssistantSettings.from_env()
