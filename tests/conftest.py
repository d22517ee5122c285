import pytest


@pytest.fixture(autouse=True)
def audit_dir(tmp_path, monkeypatch):
    """Keep per-game audit logs out of the working tree."""
    path = tmp_path / "sessions"
    monkeypatch.setenv("SUBHUNT_AUDIT_DIR", str(path))
    return path
