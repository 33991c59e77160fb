import pytest

from relock import LockRecord


@pytest.mark.parametrize(
    ["value", "owner", "count", "legacy"],
    [
        pytest.param("alice:1", "alice", 1, False, id="simple"),
        pytest.param("alice:12", "alice", 12, False, id="multi-digit"),
        pytest.param("3f2a:140234:7", "3f2a:140234", 7, False, id="owner-with-colons"),
        pytest.param("alice", "alice", 1, True, id="legacy-bare"),
        pytest.param("alice:", "alice:", 1, True, id="empty-suffix"),
        pytest.param("alice:x1", "alice:x1", 1, True, id="non-numeric-suffix"),
    ],
)
def test_parse(value: str, owner: str, count: int, legacy: bool):
    rec = LockRecord.parse(value)
    assert rec.owner == owner
    assert rec.count == count
    assert rec.legacy is legacy


def test_encode_uses_last_colon_as_counter():
    rec = LockRecord(owner="uuid:42", count=3)
    assert rec.encode() == "uuid:42:3"
    assert LockRecord.parse(rec.encode()) == rec


def test_owned_by():
    rec = LockRecord.parse("a:b:2", pttl_ms=900)
    assert rec.owned_by("a:b")
    assert not rec.owned_by("a")
    assert rec.pttl_ms == 900
