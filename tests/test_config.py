from __future__ import annotations

from core.config import AppSettings, write_user_env_vars


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("KIND_UBI_CLUSTER_NAME", "dev")
    monkeypatch.setenv("KIND_UBI_LOCAL_PORT", "2200")

    settings = AppSettings(_env_file=None)

    assert settings.cluster_name == "dev"
    assert settings.local_port == 2200
    assert settings.provider == "podman"


def test_env_file_is_read(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("KIND_UBI_POD_NAME=box\nKIND_UBI_READY_TIMEOUT_SECONDS=30\n", encoding="utf-8")

    settings = AppSettings(_env_file=str(env_file))

    assert settings.pod_name == "box"
    assert settings.ready_timeout_seconds == 30


def test_write_user_env_vars_merges(tmp_path):
    env_path = tmp_path / "cfg" / ".env"
    write_user_env_vars({"KIND_UBI_CLUSTER_NAME": "dev"}, env_path)
    write_user_env_vars({"KIND_UBI_LOCAL_PORT": "2200"}, env_path)

    lines = env_path.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("#")
    assert "KIND_UBI_CLUSTER_NAME=dev" in lines
    assert "KIND_UBI_LOCAL_PORT=2200" in lines


def test_resolved_authorized_key(tmp_path):
    key = tmp_path / "id.pub"
    key.write_text("ssh-ed25519 AAAA me@host\n", encoding="utf-8")

    assert AppSettings(_env_file=None, authorized_key_path=key).resolved_authorized_key() == "ssh-ed25519 AAAA me@host"
    assert AppSettings(_env_file=None, authorized_key_path=tmp_path / "nope.pub").resolved_authorized_key() is None


def test_log_dir_override(tmp_path):
    assert AppSettings(_env_file=None, log_dir=tmp_path).resolved_log_dir() == tmp_path
