"""
Bulk loading of historical milk and feed records from CSV files.

    flask --app herdbook seed milk milk_log.csv
    flask --app herdbook seed feed feed_log.csv

Rows reference animals by tag number. Rows whose animal is unknown, or whose values
cannot be used, are skipped with a warning.
"""
import logging

import click
import pandas as pd
from flask.cli import AppGroup

from .animals import get_animal_by_tag
from .feed import add_feed_records
from .milk import add_milk_records, get_milk_settings
from .models import FEED_TYPE_UNITS, MILK_UNITS, TIMES_OF_DAY
from .store import get_store
from .utils import parse_date, to_number

logger = logging.getLogger(__name__)

seed_cli = AppGroup('seed', help='Load historical records from CSV files.')

# Adjust these to match the headers of your CSV files.
MILK_COLUMN_MAP = {
    'tag_col': 'tag_number',
    'date_col': 'date',
    'time_col': 'time_of_day',
    'quantity_col': 'quantity',
    'unit_col': 'unit',
}

FEED_COLUMN_MAP = {
    'tag_col': 'tag_number',
    'date_col': 'date',
    'type_col': 'feed_type',
    'quantity_col': 'quantity',
    'cost_col': 'cost',
}


class _AnimalLookup:
    """Resolves tag numbers to animal ids, looking each tag up only once."""

    def __init__(self, store):
        self.store = store
        self.animal_id_cache = {}

    def __call__(self, tag):
        if tag not in self.animal_id_cache:
            animal = get_animal_by_tag(self.store, tag) if tag else None
            self.animal_id_cache[tag] = animal.id if animal is not None else None
        return self.animal_id_cache[tag]


def _cell(row, column):
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return str(value).strip()


def seed_milk_records(store, frame):
    """
    Stages one milk record per usable row of the frame and saves them all in one write.
    Returns (added, skipped).
    """
    find_animal_id = _AnimalLookup(store)
    settings = get_milk_settings(store)
    staged = []
    skipped = 0

    for index, row in frame.iterrows():
        tag = _cell(row, MILK_COLUMN_MAP['tag_col'])
        animal_id = find_animal_id(tag)
        if animal_id is None:
            logger.warning("Animal with tag '%s' not found. Skipping row %d.", tag, index + 1)
            skipped += 1
            continue

        day = parse_date(_cell(row, MILK_COLUMN_MAP['date_col']))
        quantity = to_number(row.get(MILK_COLUMN_MAP['quantity_col']))
        time_of_day = _cell(row, MILK_COLUMN_MAP['time_col']) or 'morning'
        unit = _cell(row, MILK_COLUMN_MAP['unit_col']) or settings.default_unit
        if day is None or quantity is None or time_of_day not in TIMES_OF_DAY or unit not in MILK_UNITS:
            logger.warning("Unusable values in row %d. Skipping.", index + 1)
            skipped += 1
            continue

        staged.append({
            'animal_id': animal_id,
            'date': day.isoformat(),
            'time_of_day': time_of_day,
            'quantity': quantity,
            'unit': unit,
        })

    if staged:
        add_milk_records(store, staged, settings)
    return len(staged), skipped


def seed_feed_records(store, frame):
    """
    Stages one feed record per usable row of the frame and saves them all in one write.
    Returns (added, skipped).
    """
    find_animal_id = _AnimalLookup(store)
    staged = []
    skipped = 0

    for index, row in frame.iterrows():
        tag = _cell(row, FEED_COLUMN_MAP['tag_col'])
        animal_id = find_animal_id(tag)
        if animal_id is None:
            logger.warning("Animal with tag '%s' not found. Skipping row %d.", tag, index + 1)
            skipped += 1
            continue

        day = parse_date(_cell(row, FEED_COLUMN_MAP['date_col']))
        feed_type = _cell(row, FEED_COLUMN_MAP['type_col'])
        quantity = to_number(row.get(FEED_COLUMN_MAP['quantity_col']))
        cost = to_number(row.get(FEED_COLUMN_MAP['cost_col']))
        if day is None or feed_type not in FEED_TYPE_UNITS or quantity is None or cost is None:
            logger.warning("Unusable values in row %d. Skipping.", index + 1)
            skipped += 1
            continue

        staged.append({
            'animal_id': animal_id,
            'date': day.isoformat(),
            'feed_type': feed_type,
            'quantity': quantity,
            'unit': FEED_TYPE_UNITS[feed_type],
            'cost': cost,
        })

    if staged:
        add_feed_records(store, staged)
    return len(staged), skipped


def _read_csv(path):
    click.echo(f"Reading CSV data from {path}...")
    frame = pd.read_csv(path, dtype={MILK_COLUMN_MAP['tag_col']: str})
    click.echo(f"Found {len(frame)} rows in CSV.")
    return frame


@seed_cli.command('milk')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def seed_milk_command(path):
    """Load milk records, priced with the current milk settings."""
    added, skipped = seed_milk_records(get_store(), _read_csv(path))
    click.echo(f"Milk seeding complete: {added} added, {skipped} skipped.")


@seed_cli.command('feed')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def seed_feed_command(path):
    """Load feed records."""
    added, skipped = seed_feed_records(get_store(), _read_csv(path))
    click.echo(f"Feed seeding complete: {added} added, {skipped} skipped.")
