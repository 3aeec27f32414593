from __future__ import annotations

from cable_erp.config import CONFIG_FILE_NAME, load_settings, persist_sync_config


def test_session_directory_wins(tmp_path):
    session_dir = tmp_path / "session"
    env_dir = tmp_path / "env"

    settings = load_settings(str(session_dir), environ={"CABLE_ERP_DATA_DIR": str(env_dir)})

    assert settings.data_dir == session_dir.resolve()
    assert settings.db_path == session_dir.resolve() / "app.db"
    assert session_dir.is_dir()


def test_environment_directory_and_sync_settings(tmp_path):
    settings = load_settings(
        None,
        environ={
            "CABLE_ERP_DATA_DIR": str(tmp_path),
            "CABLE_ERP_SYNC_URL": "https://abc.supabase.co/",
            "CABLE_ERP_SYNC_KEY": "k",
            "CABLE_ERP_SYNC_TIMEOUT": "3",
        },
    )
    assert settings.data_dir == tmp_path.resolve()
    assert settings.sync_url == "https://abc.supabase.co"
    assert settings.sync_timeout == 3.0
    assert settings.sync_configured is True


def test_sync_credentials_from_settings_file(tmp_path):
    persist_sync_config(tmp_path, " https://x.supabase.co ", " key ")
    settings = load_settings(str(tmp_path), environ={})
    assert settings.sync_url == "https://x.supabase.co"
    assert settings.sync_key == "key"


def test_corrupt_settings_file_falls_back_to_defaults(tmp_path):
    (tmp_path / CONFIG_FILE_NAME).write_text("{oops", encoding="utf-8")
    settings = load_settings(str(tmp_path), environ={})
    assert settings.sync_configured is False
    assert settings.sync_timeout == 15.0
    assert settings.currency == "PKR"
