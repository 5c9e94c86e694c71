"""
Milk records and the milk aggregation engine.

Each milk record keeps the rate (and the unit of that rate) that was in effect when it
was logged, so later price changes never alter historical earnings.
"""
import logging
from collections import defaultdict
from datetime import date, timedelta

from .animals import build_animal_map, resolve_animal
from .models import MILK_UNITS, MilkRecord, MilkSettings
from .store import MILK_RECORDS, MILK_SETTINGS
from .utils import (filter_by_period, new_id, now_iso, parse_date, period_for_month,
                    round_money, to_effective_quantity, to_number)

logger = logging.getLogger(__name__)


# --- Milk settings ---

def get_milk_settings(store):
    """Returns the current settings, falling back to a rate of 0 per litre."""
    stored = store.read_all(MILK_SETTINGS)
    if not stored:
        return MilkSettings()
    data = stored[0]
    rate = to_number(data.get('rate_per_unit'))
    unit = data.get('default_unit')
    return MilkSettings(
        rate_per_unit=rate if rate is not None else 0.0,
        default_unit=unit if unit in MILK_UNITS else 'litre',
    )


def save_milk_settings(store, settings):
    rate = to_number(settings.rate_per_unit)
    saved = MilkSettings(
        rate_per_unit=rate if rate is not None else 0.0,
        default_unit=settings.default_unit if settings.default_unit in MILK_UNITS else 'litre',
    )
    store.write_all(MILK_SETTINGS, [saved.to_dict()])
    return saved


# --- Milk records ---

def _load(store):
    return [MilkRecord.from_dict(data) for data in store.read_all(MILK_RECORDS)]


def _save(store, records):
    store.write_all(MILK_RECORDS, [record.to_dict() for record in records])


def _new_milk_record(data, settings):
    values = {k: v for k, v in data.items()
              if k not in ('id', 'created_at', 'rate_snapshot', 'rate_unit_snapshot')}
    return MilkRecord.from_dict({
        **values,
        'id': new_id(),
        'rate_snapshot': settings.rate_per_unit,
        'rate_unit_snapshot': settings.default_unit,
        'created_at': now_iso(),
    })


def add_milk_records(store, rows, settings):
    """
    Logs several milking events with a single write of the collection.
    The rate and rate unit are copied from the given settings and never recomputed afterwards.
    """
    added = [_new_milk_record(data, settings) for data in rows]
    with store.transaction():
        records = _load(store)
        records.extend(added)
        _save(store, records)
    return added


def add_milk_record(store, data, settings):
    """Logs one milking event, priced with the given settings."""
    record, = add_milk_records(store, [data], settings)
    logger.info("Added milk record %s for animal %s.", record.id, record.animal_id)
    return record


def get_all_milk_records(store):
    """All milk records, newest date first, then newest entry first."""
    records = sorted(_load(store), key=lambda r: r.created_at or '', reverse=True)
    return sorted(records, key=lambda r: parse_date(r.date) or date.min, reverse=True)


def get_milk_records_by_date(store, day):
    """Records of one calendar day, morning milkings before evening ones."""
    records = [r for r in _load(store) if parse_date(r.date) == day]
    return sorted(records, key=lambda r: (r.time_of_day != 'morning', r.created_at or ''))


def get_milk_records_by_animal_id(store, animal_id):
    return [r for r in _load(store) if r.animal_id == animal_id]


def delete_milk_record(store, record_id):
    with store.transaction():
        records = _load(store)
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        _save(store, remaining)
    logger.info("Deleted milk record %s.", record_id)
    return True


# --- Earnings ---

def calculate_record_income(record, fallback_unit='litre'):
    """
    Income of one record: its quantity, expressed in the unit of the rate snapshot,
    times the rate snapshot. Malformed or non-positive quantities and rates earn 0.
    fallback_unit is used for records logged before the rate unit was captured.
    """
    quantity = to_number(record.quantity)
    rate = to_number(record.rate_snapshot)
    if quantity is None or quantity <= 0 or rate is None or rate <= 0:
        return 0.0

    rate_unit = record.rate_unit_snapshot or fallback_unit
    return to_effective_quantity(quantity, record.unit, rate_unit) * rate


def _new_totals():
    return {'earnings': 0.0, 'litre': 0.0, 'kg': 0.0}


def _accumulate(totals, record, fallback_unit):
    quantity = to_number(record.quantity)
    # Litres and kilograms are kept apart rather than converted into one figure.
    if quantity is not None and quantity > 0 and record.unit in ('litre', 'kg'):
        totals[record.unit] += quantity
    totals['earnings'] += calculate_record_income(record, fallback_unit)


def _summary(totals):
    return {
        'total_earnings': round_money(totals['earnings']),
        'total_quantity_litre': round_money(totals['litre']),
        'total_quantity_kg': round_money(totals['kg']),
    }


def get_overall_milk_summary(store, period=None):
    records = filter_by_period(_load(store), 'date', period)
    fallback_unit = get_milk_settings(store).default_unit

    totals = _new_totals()
    for record in records:
        _accumulate(totals, record, fallback_unit)
    return _summary(totals)


def get_milk_summary_per_animal(store, period=None, language='en'):
    """Earnings and quantities per animal, highest earnings first."""
    records = filter_by_period(_load(store), 'date', period)
    fallback_unit = get_milk_settings(store).default_unit
    animal_map = build_animal_map(store)

    per_animal = defaultdict(_new_totals)
    for record in records:
        _accumulate(per_animal[record.animal_id], record, fallback_unit)

    summaries = []
    for animal_id, totals in per_animal.items():
        name, tag = resolve_animal(animal_map, animal_id, language)
        summaries.append({
            'animal_id': animal_id,
            'animal_name': name,
            'animal_tag_number': tag,
            **_summary(totals),
        })
    return sorted(summaries, key=lambda s: s['total_earnings'], reverse=True)


def get_daily_income_trend(store, number_of_days=7, today=None):
    """
    Income per day over the last number_of_days days ending today, across all records.
    Every day of the range is present, days without milk have an income of 0.
    """
    today = today or date.today()
    fallback_unit = get_milk_settings(store).default_unit

    income_by_day = defaultdict(float)
    for record in _load(store):
        record_date = parse_date(record.date)
        if record_date is not None:
            income_by_day[record_date] += calculate_record_income(record, fallback_unit)

    trend = []
    for offset in range(number_of_days - 1, -1, -1):
        day = today - timedelta(days=offset)
        trend.append({'date': day.isoformat(), 'income': round_money(income_by_day[day])})
    return trend


def get_milk_earnings_for_period(store, period=None):
    records = filter_by_period(_load(store), 'date', period)
    fallback_unit = get_milk_settings(store).default_unit
    return round_money(sum(calculate_record_income(r, fallback_unit) for r in records))


def get_milk_earnings_for_month(store, target_date):
    return get_milk_earnings_for_period(store, period_for_month(target_date))
