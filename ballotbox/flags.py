# flags.py
#
# Device-local "already voted" markers. These are a cache hint for the login
# screen only; the voters.has_voted column is the source of truth.

import logging

logger = logging.getLogger(__name__)

VOTED_PREFIX = 'voted_'
HAS_VOTED_KEY = 'hasVoted'


class FlagStore:
    """Read/write/clear flags by key on top of any mutable mapping."""

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else {}

    def get(self, key, default=None):
        return self.storage.get(key, default)

    def set(self, key, value):
        self.storage[key] = value

    def remove(self, key):
        self.storage.pop(key, None)

    def keys(self):
        return list(self.storage.keys())

    def mark_voted(self, student_id):
        self.set(f"{VOTED_PREFIX}{student_id}", 'true')
        self.set(HAS_VOTED_KEY, 'true')

    def unmark_voted(self, student_id):
        self.remove(f"{VOTED_PREFIX}{student_id}")

    def is_marked_voted(self, student_id) -> bool:
        return self.get(f"{VOTED_PREFIX}{student_id}") == 'true'

    def clear_voted_markers(self) -> int:
        keys_to_remove = [
            key for key in self.keys()
            if key.startswith(VOTED_PREFIX) or key == HAS_VOTED_KEY
        ]
        for key in keys_to_remove:
            self.remove(key)
        if keys_to_remove:
            logger.info(f"Cleared {len(keys_to_remove)} local voted marker(s).")
        return len(keys_to_remove)
