from __future__ import annotations

from salesgrader.settings import Settings


def test_data_dir_defaults_to_local_data_dir(monkeypatch) -> None:
    monkeypatch.delenv("SALESGRADER_DATA_DIR", raising=False)
    monkeypatch.delenv("DATA_DIR", raising=False)

    settings = Settings()

    assert settings.data_path.as_posix().endswith("/data")
    assert settings.sqlite_path.endswith("salesgrader.db")


def test_data_dir_accepts_unprefixed_env(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("SALESGRADER_DATA_DIR", raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path))

    settings = Settings()

    assert settings.data_path == tmp_path
    assert settings.sqlite_url == f"sqlite:///{tmp_path / 'salesgrader.db'}"


def test_grading_defaults(monkeypatch) -> None:
    for name in ("SALESGRADER_BATCH_SIZE", "SALESGRADER_JOB_MAX_ATTEMPTS", "SALESGRADER_QUEUE_BACKEND"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.batch_size == 5
    assert settings.job_max_attempts == 3
    assert settings.queue_backend == "threaded"
    assert settings.enhancement_model == "gpt-4o-mini"


def test_grading_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SALESGRADER_BATCH_SIZE", "8")
    monkeypatch.setenv("SALESGRADER_ENHANCEMENT_ENABLED", "false")

    settings = Settings()

    assert settings.batch_size == 8
    assert settings.enhancement_enabled is False


def test_cors_allow_origins_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://coach.example.com, https://staging.example.com")

    settings = Settings()

    assert settings.cors_origin_list == [
        "https://coach.example.com",
        "https://staging.example.com",
    ]
