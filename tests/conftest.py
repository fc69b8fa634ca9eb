from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolated_database(tmp_path: Path, monkeypatch) -> None:
    from sqlmodel import SQLModel, create_engine

    from salesgrader import db, models  # noqa: F401
    from salesgrader.pipeline.queue import reset_job_queue
    from salesgrader.settings import settings
    from salesgrader.transcripts.provider import reset_transcript_provider

    monkeypatch.delenv("OPENAI_MOCK", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "sqlite_path", str(tmp_path / "test.db"))
    monkeypatch.setattr(settings, "queue_backend", "inline")
    monkeypatch.setattr(settings, "enhancement_enabled", False)
    monkeypatch.setattr(settings, "transcript_provider_url", None)

    engine = create_engine(settings.sqlite_url, connect_args={"check_same_thread": False})
    monkeypatch.setattr(db, "engine", engine)
    SQLModel.metadata.create_all(engine)

    reset_job_queue()
    reset_transcript_provider()
    yield
    reset_job_queue()
    reset_transcript_provider()
    engine.dispose()


@pytest.fixture
def sample_records() -> list[dict[str, str]]:
    lines = [
        ("Rep", "Hi there! My name is Sam, I'm with Acme Pest Services."),
        ("Customer", "Oh, hi. What is this about?"),
        ("Rep", "We're treating homes in the neighborhood. Have you noticed any ants or spiders lately?"),
        ("Customer", "A few ants in the kitchen. How much does it cost?"),
        ("Rep", "It's only $49 a month, it protects the whole house, and the treatment is safe for kids and pets."),
        ("Customer", "Hmm, that's a lot. I need to think about it."),
        ("Rep", "I hear you, that makes sense. Can I ask what price you had in mind? Here's how we handle it: we guarantee results or we come back free. Does that help?"),
        ("Customer", "Yeah, that helps."),
        ("Rep", "Great. Which works better for you, Tuesday morning or Thursday afternoon? Let's get you started."),
        ("Customer", "Tuesday works."),
        ("Rep", "Perfect, can I book you for Tuesday at 9? Thank you so much!"),
    ]
    return [{"speaker": speaker, "text": text} for speaker, text in lines]
