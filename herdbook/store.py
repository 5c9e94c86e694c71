"""
Record stores.

Every core function reads and writes whole collections through a RecordStore,
so the aggregation code never knows where the records live.
"""
import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager

from flask import current_app

from .models import RecordCollection

logger = logging.getLogger(__name__)

# Entity types (one collection each)
ANIMALS = 'animals'
MILK_RECORDS = 'milk_records'
MILK_SETTINGS = 'milk_settings'
FEED_RECORDS = 'feed_records'
HEALTH_RECORDS = 'health_records'
INSEMINATIONS = 'insemination_records'
PREGNANCY_CHECKS = 'pregnancy_check_records'
CALVINGS = 'calving_records'


class RecordStore(ABC):
    """Whole-collection access to stored records, one collection per entity type."""

    def __init__(self):
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self):
        """
        Serialises read-modify-write cycles on this store. Every mutation that reads a
        collection and writes it back holds this for the whole cycle. Re-entrant, so a
        mutation may call another one inside it.
        """
        with self._lock:
            yield self

    @abstractmethod
    def read_all(self, entity_type):
        """Returns every stored record (as dicts) of the entity type. Order is not guaranteed."""

    @abstractmethod
    def write_all(self, entity_type, records):
        """Replaces the full collection of the entity type."""


class MemoryRecordStore(RecordStore):
    """Keeps collections in a dict. Copies on the way in and out, like a real store would."""

    def __init__(self, initial=None):
        super().__init__()
        self._collections = {}
        for entity_type, records in (initial or {}).items():
            self.write_all(entity_type, records)

    def read_all(self, entity_type):
        return copy.deepcopy(self._collections.get(entity_type, []))

    def write_all(self, entity_type, records):
        self._collections[entity_type] = copy.deepcopy(list(records))


class SqlRecordStore(RecordStore):
    """Persists each collection as a JSON array in one RecordCollection row."""

    def __init__(self, session):
        super().__init__()
        self.session = session

    def read_all(self, entity_type):
        # Another thread may have committed since this session last loaded the row.
        row = self.session.get(RecordCollection, entity_type, populate_existing=True)
        if row is None:
            return []
        try:
            records = json.loads(row.payload)
        except ValueError:
            logger.warning("Stored collection '%s' is not valid JSON, reading it as empty.", entity_type)
            return []
        if not isinstance(records, list):
            logger.warning("Stored collection '%s' is not a list, reading it as empty.", entity_type)
            return []
        return records

    def write_all(self, entity_type, records):
        payload = json.dumps(list(records), default=str)
        try:
            row = self.session.get(RecordCollection, entity_type)
            if row is None:
                row = RecordCollection(entity_type=entity_type, payload=payload)
                self.session.add(row)
            else:
                row.payload = payload
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise


def get_store():
    """Returns the record store registered on the current Flask app."""
    return current_app.extensions['herdbook_store']
