"""Health records (vaccinations, treatments, checkups) and health expense aggregation."""
import logging
from datetime import date

from .animals import get_all_animals
from .models import HealthRecord
from .store import HEALTH_RECORDS
from .utils import (filter_by_period, new_id, now_iso, parse_date, period_for_month,
                    round_money, sum_expenses, to_number)

logger = logging.getLogger(__name__)


def _load(store):
    return [HealthRecord.from_dict(data) for data in store.read_all(HEALTH_RECORDS)]


def _save(store, records):
    store.write_all(HEALTH_RECORDS, [record.to_dict() for record in records])


def add_health_record(store, data):
    values = {k: v for k, v in data.items() if k not in ('id', 'created_at')}
    # A zero or blank expense is stored as no expense at all.
    values['expense'] = to_number(values.get('expense')) or None
    record = HealthRecord.from_dict({**values, 'id': new_id(), 'created_at': now_iso()})
    if record.type == 'treatment' and not record.medication:
        logger.warning("Treatment %s for animal %s was logged without medication.",
                       record.id, record.animal_id)
    with store.transaction():
        records = _load(store)
        records.append(record)
        _save(store, records)
    logger.info("Added %s record %s for animal %s.", record.type, record.id, record.animal_id)
    return record


def _newest_first(records):
    records = sorted(records, key=lambda r: r.created_at or '', reverse=True)
    return sorted(records, key=lambda r: parse_date(r.date) or date.min, reverse=True)


def get_all_health_records(store):
    return _newest_first(_load(store))


def get_health_records_by_animal_id(store, animal_id):
    return _newest_first(r for r in _load(store) if r.animal_id == animal_id)


def get_health_records_by_date(store, day):
    records = [r for r in _load(store) if parse_date(r.date) == day]
    return sorted(records, key=lambda r: r.created_at or '')


def delete_health_record(store, record_id):
    with store.transaction():
        records = _load(store)
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        _save(store, remaining)
    logger.info("Deleted health record %s.", record_id)
    return True


def get_upcoming_health_events(store, today=None):
    """Records with a next due date after today, soonest first."""
    today = today or date.today()
    upcoming = []
    for record in get_all_health_records(store):
        due = parse_date(record.next_due_date)
        if due is not None and due > today:
            upcoming.append((due, record))
    upcoming.sort(key=lambda pair: pair[0])
    return [record for _, record in upcoming]


def get_health_expenses_for_period(store, period=None):
    return sum_expenses(filter_by_period(_load(store), 'date', period))


def get_monthly_health_expenses(store, target_date):
    return get_health_expenses_for_period(store, period_for_month(target_date))


def get_per_animal_health_summary(store, period=None, language='en'):
    """
    One summary per known animal, including animals without any health record,
    most expensive first.
    """
    records = filter_by_period(_load(store), 'date', period)

    summaries = []
    for animal in get_all_animals(store):
        total_cost = 0.0
        counts = {'vaccination': 0, 'treatment': 0, 'checkup': 0}
        for record in records:
            if record.animal_id != animal.id:
                continue
            total_cost += to_number(record.expense) or 0.0
            if record.type in counts:
                counts[record.type] += 1

        summaries.append({
            'animal_id': animal.id,
            'animal_name': animal.display_name(language),
            'animal_tag_number': animal.tag_number,
            'total_health_cost': round_money(total_cost),
            'vaccination_count': counts['vaccination'],
            'treatment_count': counts['treatment'],
            'checkup_count': counts['checkup'],
        })
    return sorted(summaries, key=lambda s: s['total_health_cost'], reverse=True)
