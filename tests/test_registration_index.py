import json
from pathlib import Path

from remindday.registration_index import RegistrationIndex, load_index


def test_set_get_and_pop(tmp_path: Path) -> None:
    index = RegistrationIndex(tmp_path / "registrations.json")

    index.set("rec-1", "birthday-a")
    index.set("rec-2", "birthday-b")
    index.set("rec-1", "birthday-c")

    assert index.get("rec-1") == "birthday-c"
    assert index.pop("rec-1") == "birthday-c"
    assert index.pop("rec-1") is None
    assert index.items() == {"rec-2": "birthday-b"}


def test_discard_registration_and_clear(tmp_path: Path) -> None:
    index = RegistrationIndex(tmp_path / "registrations.json")
    index.set("rec-1", "birthday-a")
    index.set("rec-2", "birthday-b")

    index.discard_registration("birthday-a")
    assert index.items() == {"rec-2": "birthday-b"}

    index.clear()
    assert index.items() == {}


def test_load_index_ignores_malformed_entries(tmp_path: Path) -> None:
    path = tmp_path / "registrations.json"
    path.write_text(
        json.dumps({"version": 1, "registrations": {"rec-1": "birthday-a", "rec-2": 7}}),
        encoding="utf-8",
    )

    assert load_index(path) == {"rec-1": "birthday-a"}
    assert load_index(tmp_path / "missing.json") == {}
