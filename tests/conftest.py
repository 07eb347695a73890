import pytest

import progress


@pytest.fixture(autouse=True)
def _isolated_progress_state(tmp_path, monkeypatch):
    """Keep each test's progress file out of the checkout."""
    state = tmp_path / "progress_state.json"
    monkeypatch.setattr(progress, "STATE", progress._StateFile(state))
    yield state
