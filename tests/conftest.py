import pytest

from skillswap import config, events
from skillswap.lib import fingerprint as fp
from skillswap.lib import paths
from skillswap.models import ContactChannels, ParticipantRecord


@pytest.fixture(autouse=True)
def reset_reports():
    """Listener registry is module state; every test starts without listeners."""
    events.clear()
    yield
    events.clear()


@pytest.fixture
def skillswap_home(monkeypatch, tmp_path):
    """Isolated ~/.skillswap per test.

    Provides:
    - Temporary .skillswap directory for config, annotations and snapshot
    - Monkeypatched paths module
    - Fresh config cache (setup + teardown)
    """
    home = tmp_path / ".skillswap"
    home.mkdir()
    monkeypatch.setattr(paths, "dot_skillswap", lambda: home)
    config.clear_cache()

    yield home

    config.clear_cache()


@pytest.fixture
def make_record():
    """Build a ParticipantRecord from readable skill text."""

    def _make(
        participant_id: int,
        identity: str,
        teach: str,
        learn: str,
        name: str | None = None,
        packed: bool = True,
        email: str = "",
    ) -> ParticipantRecord:
        return ParticipantRecord(
            id=participant_id,
            identity=identity,
            display_name=name or f"user-{participant_id}",
            teach_fingerprint=fp.fingerprint_text(teach, packed=packed),
            learn_fingerprint=fp.fingerprint_text(learn, packed=packed),
            contacts=ContactChannels(email=email or f"user{participant_id}@example.com"),
        )

    return _make
