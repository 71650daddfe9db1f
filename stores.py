"""
JSON-file stores for protocols, the user profile and workout history.

These are the collaborators a WorkoutSession is wired to. Each store keeps
one JSON document under WORKOUT_DATA_DIR (default ./data).
"""

import json
import logging
import os
import time
import uuid

from models import ProfileModel, Protocol

log = logging.getLogger("workout.stores")

DATA_DIR = os.environ.get("WORKOUT_DATA_DIR", "data")


def data_path(filename, data_dir=None):
    return os.path.join(data_dir or DATA_DIR, filename)


class JsonFile:
    """A JSON document on disk; missing or corrupt files read as ``default``."""

    def __init__(self, path, default):
        self.path = path
        self._default = default

    def load(self):
        try:
            with open(self.path) as f:
                return json.load(f)
        except FileNotFoundError:
            return self._default()
        except json.JSONDecodeError:
            log.warning(f"Ignoring unreadable store file {self.path}")
            return self._default()

    def save(self, data):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.path)


class ProtocolStore:
    def __init__(self, path=None):
        self._file = JsonFile(path or data_path("protocols.json"), list)

    def list(self):
        return [Protocol.model_validate(p) for p in self._file.load()]

    def get(self, protocol_id):
        """Protocol by id, or None if it doesn't exist."""
        for p in self._file.load():
            if p.get("id") == protocol_id:
                return Protocol.model_validate(p)
        return None

    def save(self, protocol):
        """Insert or replace a protocol (exercise list replaced wholesale)."""
        data = [p for p in self._file.load() if p.get("id") != protocol.id]
        data.append(protocol.model_dump())
        self._file.save(data)
        return protocol

    def delete(self, protocol_id):
        data = self._file.load()
        kept = [p for p in data if p.get("id") != protocol_id]
        if len(kept) == len(data):
            return False
        self._file.save(kept)
        return True


class ProfileStore:
    def __init__(self, path=None):
        self._file = JsonFile(path or data_path("profile.json"), dict)

    def get(self):
        data = self._file.load()
        return ProfileModel.model_validate(data) if data else None

    def update(self, fields):
        current = self._file.load()
        current.update({k: v for k, v in fields.items() if v is not None})
        current["updated_at"] = time.strftime("%Y-%m-%dT%H:%M:%S")
        profile = ProfileModel.model_validate(current)
        self._file.save(profile.model_dump())
        return profile

    def weight_kg(self):
        """Body weight for calorie estimates, None when unknown."""
        profile = self.get()
        return profile.weight_kg if profile else None


class HistoryStore:
    """Workout logs, newest first."""

    def __init__(self, path=None, max_entries=None):
        self._file = JsonFile(path or data_path("history.json"), list)
        self.max_entries = max_entries

    async def save(self, finalized):
        entry = {
            "id": uuid.uuid4().hex,
            "created_at": time.strftime("%Y-%m-%dT%H:%M:%S"),
            **finalized.to_history_payload(),
        }
        history = self._file.load()
        history.insert(0, entry)
        if self.max_entries:
            history = history[: self.max_entries]
        self._file.save(history)
        log.info(f"Saved workout log {entry['id']} ({entry['name']})")
        return entry

    def list(self):
        return self._file.load()

    def get(self, entry_id):
        return next((h for h in self._file.load() if h.get("id") == entry_id), None)

    def delete(self, entry_id):
        history = self._file.load()
        kept = [h for h in history if h.get("id") != entry_id]
        if len(kept) == len(history):
            return False
        self._file.save(kept)
        return True
