import pydantic
import pytest

from relock import Settings


@pytest.mark.parametrize(
    ["field", "value"],
    [
        pytest.param("LOCK_TTL_MS", 0, id="zero-ttl"),
        pytest.param("LOCK_TTL_MS", -1, id="negative-ttl"),
        pytest.param("LOCK_RETRY_MS", 0, id="zero-retry"),
        pytest.param("WATCHDOG_FLOOR_MS", 0, id="zero-floor"),
        pytest.param("LOCK_WAIT_MS", -1, id="negative-wait"),
    ],
)
def test_rejects_invalid_durations(field: str, value: int):
    with pytest.raises(pydantic.ValidationError):
        Settings(**{field: value})


def test_zero_wait_means_single_attempt():
    assert Settings(LOCK_WAIT_MS=0).LOCK_WAIT_MS == 0


def test_defaults():
    s = Settings(_env_file=None)
    assert (s.LOCK_TTL_MS, s.LOCK_WAIT_MS, s.LOCK_RETRY_MS) == (8000, 10000, 200)
    assert s.WATCHDOG_FLOOR_MS == 100
    assert s.LOCK_KEY_PREFIX == "lock:"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("LOCK_TTL_MS", "3000")
    monkeypatch.setenv("WATCHDOG_ENABLED", "false")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6380/2")
    s = Settings(_env_file=None)
    assert s.LOCK_TTL_MS == 3000
    assert s.WATCHDOG_ENABLED is False
    assert s.REDIS_URL == "redis://cache:6380/2"


def test_reads_env_file(tmp_path):
    env = tmp_path / ".env"
    env.write_text("LOCK_RETRY_MS=50\nLOCK_KEY_PREFIX=mutex:\n")
    s = Settings(_env_file=env)
    assert s.LOCK_RETRY_MS == 50
    assert s.LOCK_KEY_PREFIX == "mutex:"


def test_env_file_rejects_invalid_value(tmp_path):
    env = tmp_path / ".env"
    env.write_text("LOCK_TTL_MS=0\n")
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=env)
