"""Animal registry: animal CRUD plus the lookups every report uses for names, tags and gestation."""
import logging

from .models import Animal, GESTATION_PERIODS
from .store import ANIMALS
from .utils import new_id, now_iso

logger = logging.getLogger(__name__)

UNKNOWN_NAME = {'en': 'Unknown', 'ur': 'نامعلوم'}
UNKNOWN_TAG = 'N/A'

# Set on creation, never through update_animal().
_PROTECTED_FIELDS = ('id', 'created_at', 'updated_at')


def _load(store):
    return [Animal.from_dict(data) for data in store.read_all(ANIMALS)]


def _save(store, animals):
    store.write_all(ANIMALS, [animal.to_dict() for animal in animals])


def get_all_animals(store):
    """All animals, most recently created first."""
    return sorted(_load(store), key=lambda a: a.created_at or '', reverse=True)


def get_animal_by_id(store, animal_id):
    return next((a for a in _load(store) if a.id == animal_id), None)


def get_animal_by_tag(store, tag_number):
    tag_number = str(tag_number).strip()
    return next((a for a in _load(store) if str(a.tag_number).strip() == tag_number), None)


def add_animal(store, data):
    now = now_iso()
    values = {k: v for k, v in data.items() if k not in _PROTECTED_FIELDS}
    animal = Animal.from_dict({**values, 'id': new_id(), 'created_at': now, 'updated_at': now})
    with store.transaction():
        animals = _load(store)
        animals.append(animal)
        _save(store, animals)
    logger.info("Added animal %s (%s).", animal.id, animal.tag_number)
    return animal


def update_animal(store, animal_id, updates):
    """
    Applies a partial update. mother_id / father_id only change when their key is present.
    Returns the updated animal, or None if no animal has that id.
    """
    with store.transaction():
        animals = _load(store)
        for index, animal in enumerate(animals):
            if animal.id != animal_id:
                continue
            merged = animal.to_dict()
            merged.update({k: v for k, v in updates.items() if k not in _PROTECTED_FIELDS})
            merged['updated_at'] = now_iso()
            animals[index] = Animal.from_dict(merged)
            _save(store, animals)
            return animals[index]
    return None


def delete_animal(store, animal_id):
    """
    Deletes the animal only. Milk, feed, health and reproduction records that point at it
    are left in place and show up as 'Unknown' in reports.
    """
    with store.transaction():
        animals = _load(store)
        remaining = [a for a in animals if a.id != animal_id]
        if len(remaining) == len(animals):
            return False
        _save(store, remaining)
    logger.info("Deleted animal %s; its records are kept.", animal_id)
    return True


# --- Read-only accessors used by the reports ---

def build_animal_map(store):
    return {animal.id: animal for animal in _load(store)}


def resolve_animal(animal_map, animal_id, language='en'):
    """Returns (display name, tag number) for an animal id, tolerating ids with no animal."""
    animal = animal_map.get(animal_id)
    if animal is None:
        return UNKNOWN_NAME.get(language, UNKNOWN_NAME['en']), UNKNOWN_TAG
    return animal.display_name(language), animal.tag_number


def get_gestation_days(species):
    return GESTATION_PERIODS.get(species)
