from dataclasses import asdict, dataclass, field, fields, MISSING
from datetime import datetime, timezone
from typing import Any, List, Optional

from . import db

# --- Reference data ---

ANIMAL_SPECIES = ('cow', 'buffalo', 'sheep', 'goat')
ANIMAL_GENDERS = ('male', 'female')
ANIMAL_STATUSES = ('active', 'sold', 'deceased')

MILK_UNITS = ('litre', 'kg')
TIMES_OF_DAY = ('morning', 'evening')

# Each feed type is always logged in a single canonical unit.
FEED_TYPE_UNITS = {
    'green': 'kg',
    'dry': 'kg',
    'concentrate': 'kg',
    'water': 'litre',
}

HEALTH_RECORD_TYPES = ('vaccination', 'treatment', 'checkup')

INSEMINATION_TYPES = ('ai', 'natural')
PREGNANCY_RESULTS = ('pregnant', 'not_pregnant', 'recheck')
CALVING_EASES = ('easy', 'assisted', 'difficult')

# Gestation length in days, per species.
GESTATION_PERIODS = {
    'cow': 283,
    'buffalo': 315,
    'goat': 150,
    'sheep': 147,
}


class RecordMixin:
    """Dictionary (de)serialization shared by all stored record types."""

    def to_dict(self):
        """Serializes the record to a plain, JSON-ready dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        """
        Builds a record from a stored dictionary.
        Unknown keys are ignored and missing keys fall back to the field default (or None),
        so records written by older versions still load.
        """
        values = {}
        for f in fields(cls):
            if f.name in data:
                values[f.name] = data[f.name]
            elif f.default is not MISSING:
                values[f.name] = f.default
            elif f.default_factory is not MISSING:
                values[f.name] = f.default_factory()
            else:
                values[f.name] = None
        return cls(**values)


@dataclass(repr=False)
class Animal(RecordMixin):
    """Represents a single animal of the herd, with its identity and breeding attributes."""
    id: str
    name_en: str
    name_ur: str
    species: str
    breed: str
    gender: str
    tag_number: str
    date_of_birth: str
    status: str = 'active'
    photo_data_url: Optional[str] = None
    # Weak references to the parents; never enforced.
    mother_id: Optional[str] = None
    father_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def display_name(self, language='en'):
        if language == 'ur' and self.name_ur:
            return self.name_ur
        return self.name_en

    def __repr__(self):
        return f'<Animal {self.tag_number} ({self.species})>'


@dataclass
class MilkSettings(RecordMixin):
    """The milk price currently in effect and the unit that price applies to."""
    rate_per_unit: float = 0.0
    default_unit: str = 'litre'


@dataclass(repr=False)
class MilkRecord(RecordMixin):
    """Represents a single milking event, with the milk rate captured when it was logged."""
    id: str
    animal_id: str
    date: str
    time_of_day: str
    quantity: Any
    unit: str
    rate_snapshot: Any
    rate_unit_snapshot: Optional[str]
    created_at: Optional[str] = None

    def __repr__(self):
        return f'<MilkRecord for animal {self.animal_id} on {self.date} ({self.time_of_day})>'


@dataclass(repr=False)
class FeedRecord(RecordMixin):
    """Represents a single feeding event and its absolute cost."""
    id: str
    animal_id: str
    date: str
    feed_type: str
    quantity: Any
    unit: str
    cost: Any
    created_at: Optional[str] = None

    def __repr__(self):
        return f'<FeedRecord {self.feed_type} for animal {self.animal_id} on {self.date}>'


@dataclass(repr=False)
class HealthRecord(RecordMixin):
    """Represents a vaccination, treatment or checkup of an animal."""
    id: str
    animal_id: str
    type: str
    date: str
    notes: Optional[str] = None
    medication: Optional[str] = None
    next_due_date: Optional[str] = None
    expense: Any = None
    created_at: Optional[str] = None

    def __repr__(self):
        return f'<HealthRecord {self.type} for animal {self.animal_id} on {self.date}>'


@dataclass(repr=False)
class InseminationRecord(RecordMixin):
    """
    Represents one breeding attempt on a dam.
    expected_delivery_date is derived from insemination_date and the dam's gestation period.
    """
    id: str
    animal_id: str
    insemination_date: str
    type: str
    semen_details: str
    expected_delivery_date: str
    vet_name: Optional[str] = None
    expense: Any = None
    pregnancy_check_id: Optional[str] = None
    calving_record_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __repr__(self):
        return f'<InseminationRecord for dam {self.animal_id} on {self.insemination_date}>'


@dataclass(repr=False)
class PregnancyCheckRecord(RecordMixin):
    """Represents a pregnancy check belonging to exactly one insemination."""
    id: str
    insemination_id: str
    animal_id: str
    check_date: str
    result: str
    vet_name: Optional[str] = None
    expense: Any = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __repr__(self):
        return f'<PregnancyCheckRecord {self.result} for insemination {self.insemination_id}>'


@dataclass
class CalfData(RecordMixin):
    calf_tag_number: str
    calf_gender: str
    new_animal_id: Optional[str] = None
    birth_weight: Any = None
    notes: Optional[str] = None


@dataclass(repr=False)
class CalvingRecord(RecordMixin):
    """Represents the calving that closes an insemination."""
    id: str
    insemination_id: str
    animal_id: str
    calving_date: str
    number_of_calves: Any
    calving_ease: str
    calves_data: List[CalfData] = field(default_factory=list)
    expense: Any = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        record = super().from_dict(data)
        record.calves_data = [
            calf if isinstance(calf, CalfData) else CalfData.from_dict(calf)
            for calf in (record.calves_data or [])
        ]
        return record

    def __repr__(self):
        return f'<CalvingRecord for insemination {self.insemination_id} on {self.calving_date}>'


class RecordCollection(db.Model):
    """
    Stores one whole collection of records (e.g. all milk records) as a JSON array.
    The record store reads and rewrites the full collection as one unit.
    """
    entity_type = db.Column(db.String(50), primary_key=True)
    payload = db.Column(db.Text, nullable=False, default='[]')
    updated_at = db.Column(db.DateTime, nullable=False,
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f'<RecordCollection {self.entity_type}>'
