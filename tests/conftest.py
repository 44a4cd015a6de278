"""Root test configuration: shared vault fixtures and session-level cleanup of runtime artifacts"""

import shutil
from pathlib import Path

import pytest

from one2mp.config import HaloSite, Settings, WechatAccount
from one2mp.core.host import FileVault


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_FILES = ["one2mp.db", "test.db"]
_CLEANUP_DIRS = [".one2mp", "dist"]

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove DB files and data directories created during the test session."""
    yield
    for name in _CLEANUP_FILES:
        p = _PROJECT_ROOT / name
        if p.exists():
            p.unlink()
    for name in _CLEANUP_DIRS:
        p = _PROJECT_ROOT / name
        if p.exists():
            shutil.rmtree(p)


@pytest.fixture(name="vault_dir")
def vault_dir_fixture(tmp_path):
    d = tmp_path / "vault"
    d.mkdir()
    return d


@pytest.fixture(name="vault")
def vault_fixture(vault_dir):
    """FileVault over an empty temporary directory."""
    return FileVault(vault_dir)


@pytest.fixture(name="write")
def write_fixture(vault_dir):
    """Write a vault file (text or bytes) and return its vault-relative path."""
    def _write(path: str, content="") -> str:
        target = vault_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture(name="settings")
def settings_fixture(tmp_path, vault_dir):
    """Settings pointing at the temp vault, key-value draft storage, and short widget timeouts."""
    return Settings(
        vault_dir=str(vault_dir),
        db_url="",
        data_file=str(tmp_path / "data.json"),
        accounts=[WechatAccount(name="main", app_id="wx-app", app_secret="wx-secret")],
        selected_account="main",
        halo_sites=[HaloSite(name="blog", url="https://halo.example", token="tok")],
        callout_timeout=0.05,
        diagram_timeout=0.05,
    )


@pytest.fixture(name="png")
def png_fixture():
    """Bytes of a minimal PNG header."""
    return PNG_BYTES
