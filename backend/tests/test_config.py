from pathlib import Path

from tiles3d.config import Settings, load_settings


def test_defaults(monkeypatch):
    for name in ("TILESET_ROOT", "MAX_TILESET_DEPTH", "MAX_UPLOAD_MB", "LOG_LEVEL", "FRONTEND_URL"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.tileset_root == Path(".").resolve()
    assert settings.max_tileset_depth == 16
    assert settings.max_upload_bytes == 64 * 1024 * 1024
    assert settings.log_level == "INFO"
    assert settings.frontend_url is None


def test_env_file_does_not_override_environment(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("MAX_TILESET_DEPTH=3\nLOG_LEVEL=debug\n", encoding="utf-8")
    # restored to unset after the test, load_dotenv writes into os.environ
    monkeypatch.setenv("MAX_TILESET_DEPTH", "0")
    monkeypatch.delenv("MAX_TILESET_DEPTH")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    settings = load_settings(env_file)
    assert settings.max_tileset_depth == 3
    assert settings.log_level == "WARNING"
