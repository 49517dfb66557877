from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path


def load_index(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}

    with path.open("r", encoding="utf-8") as file_obj:
        data = json.load(file_obj)

    registrations = data.get("registrations", {})
    if not isinstance(registrations, dict):
        return {}

    cleaned: dict[str, str] = {}
    for record_id, registration_id in registrations.items():
        if isinstance(record_id, str) and isinstance(registration_id, str):
            cleaned[record_id] = registration_id
    return cleaned


def save_index_atomic(path: Path, registrations: dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"version": 1, "registrations": registrations}

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as temp_file:
        json.dump(payload, temp_file, indent=2, sort_keys=True)
        temp_file.write("\n")
        temp_name = temp_file.name

    os.replace(temp_name, path)


class RegistrationIndex:
    """Maps each birthday record id to the notification registration that currently serves it."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def get(self, record_id: str) -> str | None:
        return load_index(self._path).get(record_id)

    def items(self) -> dict[str, str]:
        return load_index(self._path)

    def set(self, record_id: str, registration_id: str) -> None:
        registrations = load_index(self._path)
        registrations[record_id] = registration_id
        save_index_atomic(self._path, registrations)

    def pop(self, record_id: str) -> str | None:
        registrations = load_index(self._path)
        registration_id = registrations.pop(record_id, None)
        if registration_id is not None:
            save_index_atomic(self._path, registrations)
        return registration_id

    def discard_registration(self, registration_id: str) -> None:
        registrations = load_index(self._path)
        remaining = {key: value for key, value in registrations.items() if value != registration_id}
        if len(remaining) != len(registrations):
            save_index_atomic(self._path, remaining)

    def clear(self) -> None:
        save_index_atomic(self._path, {})
