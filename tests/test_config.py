from pathlib import Path

from commentboard.config import Settings


def test_defaults(monkeypatch):
    for name in ("AUTH_KEY_SECRET", "STORE_BACKEND", "STORE_KEY", "WRITE_ATTEMPTS", "PUBLIC_READ_URL", "SESSION_SECRET"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.auth_key_secret == ""
    assert settings.store_backend == "file"
    assert settings.store_key == "comments.json"
    assert settings.write_attempts == 5
    assert settings.public_read_url is None
    assert settings.session_secret == ""


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("AUTH_KEY_SECRET", "s3cret")
    monkeypatch.setenv("STORE_BACKEND", "S3")
    monkeypatch.setenv("STORE_BUCKET", "comments")
    monkeypatch.setenv("STORE_ENDPOINT_URL", "https://account.r2.cloudflarestorage.com")
    monkeypatch.setenv("STORE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("STORE_TIMEOUT", "2.5")
    monkeypatch.setenv("WRITE_ATTEMPTS", "3")
    monkeypatch.setenv("PUBLIC_READ_URL", "https://pub.example.com/comments.json")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.auth_key_secret == "s3cret"
    assert settings.store_backend == "s3"
    assert settings.store_bucket == "comments"
    assert settings.store_endpoint_url == "https://account.r2.cloudflarestorage.com"
    assert settings.store_data_dir == Path(tmp_path)
    assert settings.store_timeout == 2.5
    assert settings.write_attempts == 3
    assert settings.public_read_url == "https://pub.example.com/comments.json"
    assert settings.log_level == "DEBUG"
