import pytest
from pydantic import ValidationError

from app.config import Settings


@pytest.mark.unit
def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.STORAGE_BACKEND == "database"
    assert settings.COMMITMENT_DUPLICATE_POLICY == "overwrite"


@pytest.mark.unit
def test_accepts_known_choices():
    settings = Settings(_env_file=None, STORAGE_BACKEND="memory", COMMITMENT_DUPLICATE_POLICY="reject")
    assert (settings.STORAGE_BACKEND, settings.COMMITMENT_DUPLICATE_POLICY) == ("memory", "reject")


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"STORAGE_BACKEND": "sqlite"},
        {"STORAGE_BACKEND": "Memory"},
        {"COMMITMENT_DUPLICATE_POLICY": "ignore"},
    ],
)
def test_unknown_choices_fail_at_startup(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
