"""Feed records, feed cost totals and usage-by-type breakdowns."""
import logging
from collections import OrderedDict
from datetime import date

from .animals import build_animal_map, resolve_animal
from .models import FEED_TYPE_UNITS, FeedRecord
from .store import FEED_RECORDS
from .utils import (filter_by_period, month_label, new_id, now_iso, parse_date,
                    period_for_month, round_money, to_number)

logger = logging.getLogger(__name__)

ALL_TIME_TITLE = {'en': 'All Time', 'ur': 'تمام عرصہ'}


def _load(store):
    return [FeedRecord.from_dict(data) for data in store.read_all(FEED_RECORDS)]


def _save(store, records):
    store.write_all(FEED_RECORDS, [record.to_dict() for record in records])


def _new_feed_record(data):
    values = {k: v for k, v in data.items() if k not in ('id', 'created_at')}
    if not values.get('unit'):
        values['unit'] = FEED_TYPE_UNITS.get(values.get('feed_type'), 'kg')
    return FeedRecord.from_dict({**values, 'id': new_id(), 'created_at': now_iso()})


def add_feed_records(store, rows):
    """Logs several feeding events with a single write of the collection."""
    added = [_new_feed_record(data) for data in rows]
    with store.transaction():
        records = _load(store)
        records.extend(added)
        _save(store, records)
    return added


def add_feed_record(store, data):
    record, = add_feed_records(store, [data])
    logger.info("Added feed record %s for animal %s.", record.id, record.animal_id)
    return record


def get_all_feed_records(store):
    """All feed records, newest date first, then newest entry first."""
    records = sorted(_load(store), key=lambda r: r.created_at or '', reverse=True)
    return sorted(records, key=lambda r: parse_date(r.date) or date.min, reverse=True)


def get_feed_records_by_date(store, day):
    records = [r for r in _load(store) if parse_date(r.date) == day]
    return sorted(records, key=lambda r: r.created_at or '')


def delete_feed_record(store, record_id):
    with store.transaction():
        records = _load(store)
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        _save(store, remaining)
    logger.info("Deleted feed record %s.", record_id)
    return True


def _total_cost(records):
    return round_money(sum(to_number(r.cost) or 0.0 for r in records))


def get_feed_summary_for_date(store, day):
    records = get_feed_records_by_date(store, day)
    return {'total_cost': _total_cost(records), 'records': records}


def get_feed_records_filtered(store, period=None):
    return filter_by_period(get_all_feed_records(store), 'date', period)


def calculate_feed_usage_details(records):
    """
    Groups feed records by feed type, summing quantity and cost.
    The unit reported for a type is its canonical unit, not the unit stored on each record.
    Returns (overall total cost, list of per-type usage dicts).
    """
    usage = OrderedDict()
    overall_cost = 0.0
    for record in records:
        cost = to_number(record.cost) or 0.0
        quantity = to_number(record.quantity) or 0.0
        overall_cost += cost

        entry = usage.get(record.feed_type)
        if entry is None:
            entry = usage[record.feed_type] = {
                'total_quantity': 0.0,
                'total_cost': 0.0,
                'unit': FEED_TYPE_UNITS.get(record.feed_type, record.unit),
            }
        entry['total_quantity'] += quantity
        entry['total_cost'] += cost

    by_type = [
        {
            'feed_type': feed_type,
            'total_quantity': round_money(entry['total_quantity']),
            'unit': entry['unit'],
            'total_cost': round_money(entry['total_cost']),
        }
        for feed_type, entry in usage.items()
    ]
    return round_money(overall_cost), by_type


def period_title(period, language='en'):
    if period is not None and period.year and period.month:
        return month_label(period.year, period.month, language)
    if period is not None and period.year:
        return f"سال {period.year}" if language == 'ur' else f"Year {period.year}"
    return ALL_TIME_TITLE.get(language, ALL_TIME_TITLE['en'])


def get_feed_report(store, period=None, language='en'):
    """Total cost and usage by feed type (most expensive first) for the period, with a title."""
    records = get_feed_records_filtered(store, period)
    total_cost, by_type = calculate_feed_usage_details(records)
    return {
        'title': period_title(period, language),
        'total_cost': total_cost,
        'usage_by_type': sorted(by_type, key=lambda u: u['total_cost'], reverse=True),
    }


def get_monthly_feed_report(store, target_date, language='en'):
    report = get_feed_report(store, period_for_month(target_date), language)
    return {
        'month': report['title'],
        'total_cost': report['total_cost'],
        'usage_by_type': report['usage_by_type'],
    }


def get_per_animal_feed_summary(store, period=None, language='en'):
    """Feed cost and usage per animal with feed records in the period, most expensive first."""
    records = get_feed_records_filtered(store, period)
    animal_map = build_animal_map(store)

    records_by_animal = OrderedDict()
    for record in records:
        records_by_animal.setdefault(record.animal_id, []).append(record)

    summaries = []
    for animal_id, animal_records in records_by_animal.items():
        name, tag = resolve_animal(animal_map, animal_id, language)
        total_cost, by_type = calculate_feed_usage_details(animal_records)
        summaries.append({
            'animal_id': animal_id,
            'animal_name': name,
            'animal_tag_number': tag,
            'total_cost': total_cost,
            'usage_by_type': by_type,
        })
    return sorted(summaries, key=lambda s: s['total_cost'], reverse=True)


def get_overall_feed_cost(store, period=None):
    return _total_cost(get_feed_records_filtered(store, period))
