"""
Breeding records: inseminations, pregnancy checks and calvings.

An insemination points at its latest pregnancy check and at its calving. Those pointers
are written after the child record, so an interrupted write leaves a child record that
the insemination does not point at yet; nothing else is affected.
Deleting an insemination also deletes its checks and calvings.
"""
import logging
from datetime import date, timedelta

from .animals import build_animal_map, get_all_animals, get_animal_by_id, get_gestation_days, resolve_animal
from .models import CalvingRecord, InseminationRecord, PregnancyCheckRecord
from .store import CALVINGS, INSEMINATIONS, PREGNANCY_CHECKS
from .utils import (filter_by_period, new_id, now_iso, parse_date, period_for_month,
                    round_money, sum_expenses, to_number)

logger = logging.getLogger(__name__)

# Days ahead within which a delivery counts as due this week.
DUE_SOON_DAYS = 7

# Never changed through update_insemination_record().
_FIXED_INSEMINATION_FIELDS = ('id', 'animal_id', 'created_at', 'expected_delivery_date')


def _load(store, entity_type, record_type):
    return [record_type.from_dict(data) for data in store.read_all(entity_type)]


def _save(store, entity_type, records):
    store.write_all(entity_type, [record.to_dict() for record in records])


def _expense(value):
    return to_number(value) or None


def expected_delivery_date(insemination_date, species):
    """Insemination date plus the species' gestation period, or None if either is unknown."""
    gestation_days = get_gestation_days(species)
    start = parse_date(insemination_date)
    if gestation_days is None or start is None:
        return None
    return (start + timedelta(days=gestation_days)).isoformat()


# --- Insemination records ---

def _inseminations(store):
    return _load(store, INSEMINATIONS, InseminationRecord)


def get_all_insemination_records(store):
    """Newest insemination date first, then newest entry first."""
    records = sorted(_inseminations(store), key=lambda r: r.created_at or '', reverse=True)
    return sorted(records, key=lambda r: parse_date(r.insemination_date) or date.min, reverse=True)


def get_insemination_record_by_id(store, record_id):
    return next((r for r in _inseminations(store) if r.id == record_id), None)


def get_insemination_records_by_animal(store, animal_id):
    return [r for r in get_all_insemination_records(store) if r.animal_id == animal_id]


def add_insemination_record(store, data):
    """
    Logs an insemination and projects its expected delivery date from the dam's species.
    Returns None, writing nothing, when the dam or its gestation period cannot be found.
    """
    dam = get_animal_by_id(store, data.get('animal_id'))
    if dam is None:
        logger.error("Dam %s not found for insemination record.", data.get('animal_id'))
        return None
    if get_gestation_days(dam.species) is None:
        logger.error("Gestation period not defined for species: %s", dam.species)
        return None

    edd = expected_delivery_date(data.get('insemination_date'), dam.species)
    if edd is None:
        logger.error("Invalid insemination date %r.", data.get('insemination_date'))
        return None

    now = now_iso()
    values = {k: v for k, v in data.items() if k not in _FIXED_INSEMINATION_FIELDS}
    record = InseminationRecord.from_dict({
        **values,
        'animal_id': dam.id,
        'expense': _expense(data.get('expense')),
        'id': new_id(),
        'expected_delivery_date': edd,
        'created_at': now,
        'updated_at': now,
    })
    with store.transaction():
        records = _inseminations(store)
        records.append(record)
        _save(store, INSEMINATIONS, records)
    logger.info("Added insemination %s for dam %s, EDD %s.", record.id, dam.id, edd)
    return record


def update_insemination_record(store, record_id, updates):
    """
    Applies a partial update. A new insemination date recomputes the expected delivery date
    from the dam's current species; if the dam is gone the old date is kept and a warning logged.
    Returns the updated record, or None if no insemination has that id or the new
    insemination date is not a valid date.
    """
    new_date = updates.get('insemination_date')
    if new_date and parse_date(new_date) is None:
        logger.error("Invalid insemination date %r for insemination %s.", new_date, record_id)
        return None

    with store.transaction():
        records = _inseminations(store)
        index = next((i for i, r in enumerate(records) if r.id == record_id), None)
        if index is None:
            return None

        original = records[index]
        edd = original.expected_delivery_date
        if new_date and new_date != original.insemination_date:
            dam = get_animal_by_id(store, original.animal_id)
            if dam is None:
                logger.warning("Could not recalculate EDD for insemination %s: dam %s not found.",
                               record_id, original.animal_id)
            elif get_gestation_days(dam.species) is None:
                logger.warning("Could not recalculate EDD for insemination %s: "
                               "gestation period not defined for species %s.", record_id, dam.species)
            else:
                edd = expected_delivery_date(new_date, dam.species)

        merged = original.to_dict()
        merged.update({k: v for k, v in updates.items() if k not in _FIXED_INSEMINATION_FIELDS})
        if 'expense' in updates:
            merged['expense'] = _expense(updates['expense'])
        merged['expected_delivery_date'] = edd
        merged['updated_at'] = now_iso()

        records[index] = InseminationRecord.from_dict(merged)
        _save(store, INSEMINATIONS, records)
        return records[index]


def delete_insemination_record(store, record_id):
    """Deletes the insemination together with all of its pregnancy checks and calvings."""
    with store.transaction():
        records = _inseminations(store)
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        _save(store, INSEMINATIONS, remaining)
        _delete_children(store, PREGNANCY_CHECKS, PregnancyCheckRecord, record_id)
        _delete_children(store, CALVINGS, CalvingRecord, record_id)
    logger.info("Deleted insemination %s with its checks and calvings.", record_id)
    return True


def _delete_children(store, entity_type, record_type, insemination_id):
    records = _load(store, entity_type, record_type)
    remaining = [r for r in records if r.insemination_id != insemination_id]
    if len(remaining) < len(records):
        _save(store, entity_type, remaining)


def _point_parent_at(store, insemination_id, pointer_field, child_id):
    if get_insemination_record_by_id(store, insemination_id) is not None:
        update_insemination_record(store, insemination_id, {pointer_field: child_id})


def _clear_parent_pointer(store, insemination_id, pointer_field, child_id):
    parent = get_insemination_record_by_id(store, insemination_id)
    if parent is not None and getattr(parent, pointer_field) == child_id:
        update_insemination_record(store, insemination_id, {pointer_field: None})


# --- Pregnancy checks ---

def get_all_pregnancy_check_records(store):
    records = sorted(_load(store, PREGNANCY_CHECKS, PregnancyCheckRecord),
                     key=lambda r: r.created_at or '', reverse=True)
    return sorted(records, key=lambda r: parse_date(r.check_date) or date.min, reverse=True)


def get_pregnancy_check_record_by_id(store, record_id):
    checks = _load(store, PREGNANCY_CHECKS, PregnancyCheckRecord)
    return next((r for r in checks if r.id == record_id), None)


def add_pregnancy_check_record(store, data):
    """
    Writes the check, then points its insemination at it. A newer check replaces the pointer;
    older checks stay stored.
    """
    now = now_iso()
    values = {k: v for k, v in data.items() if k not in ('id', 'created_at', 'updated_at')}
    record = PregnancyCheckRecord.from_dict({
        **values,
        'expense': _expense(data.get('expense')),
        'id': new_id(),
        'created_at': now,
        'updated_at': now,
    })
    with store.transaction():
        records = _load(store, PREGNANCY_CHECKS, PregnancyCheckRecord)
        records.append(record)
        _save(store, PREGNANCY_CHECKS, records)
        _point_parent_at(store, record.insemination_id, 'pregnancy_check_id', record.id)
    logger.info("Added pregnancy check %s (%s) for insemination %s.",
                record.id, record.result, record.insemination_id)
    return record


def delete_pregnancy_check_record(store, record_id):
    with store.transaction():
        records = _load(store, PREGNANCY_CHECKS, PregnancyCheckRecord)
        target = next((r for r in records if r.id == record_id), None)
        if target is None:
            return False
        _save(store, PREGNANCY_CHECKS, [r for r in records if r.id != record_id])
        _clear_parent_pointer(store, target.insemination_id, 'pregnancy_check_id', record_id)
    logger.info("Deleted pregnancy check %s.", record_id)
    return True


# --- Calvings ---

def get_all_calving_records(store):
    return _load(store, CALVINGS, CalvingRecord)


def add_calving_record(store, data):
    """Writes the calving, then points its insemination at it."""
    now = now_iso()
    values = {k: v for k, v in data.items() if k not in ('id', 'created_at', 'updated_at')}
    record = CalvingRecord.from_dict({
        **values,
        'expense': _expense(data.get('expense')),
        'id': new_id(),
        'created_at': now,
        'updated_at': now,
    })
    with store.transaction():
        records = get_all_calving_records(store)
        records.append(record)
        _save(store, CALVINGS, records)
        _point_parent_at(store, record.insemination_id, 'calving_record_id', record.id)
    logger.info("Added calving %s for insemination %s.", record.id, record.insemination_id)
    return record


def delete_calving_record(store, record_id):
    with store.transaction():
        records = get_all_calving_records(store)
        target = next((r for r in records if r.id == record_id), None)
        if target is None:
            return False
        _save(store, CALVINGS, [r for r in records if r.id != record_id])
        _clear_parent_pointer(store, target.insemination_id, 'calving_record_id', record_id)
    logger.info("Deleted calving %s.", record_id)
    return True


# --- Upcoming deliveries ---

def get_upcoming_deliveries(store, days_in_future=90, days_past_grace=7, today=None):
    """
    Inseminations still awaiting a calving (and not checked 'not pregnant') whose expected
    delivery date lies between days_past_grace days ago and days_in_future days ahead.
    Soonest first.
    """
    today = today or date.today()
    earliest = today - timedelta(days=days_past_grace)
    latest = today + timedelta(days=days_in_future)
    checks = {c.id: c for c in _load(store, PREGNANCY_CHECKS, PregnancyCheckRecord)}

    upcoming = []
    for record in _inseminations(store):
        if record.calving_record_id:
            continue
        check = checks.get(record.pregnancy_check_id) if record.pregnancy_check_id else None
        if check is not None and check.result == 'not_pregnant':
            continue
        edd = parse_date(record.expected_delivery_date)
        if edd is None or not earliest <= edd <= latest:
            continue
        upcoming.append((edd, record))

    upcoming.sort(key=lambda pair: pair[0])
    return [record for _, record in upcoming]


def classify_delivery(expected_date, today=None):
    """
    Alert tier of an expected delivery date:
    'overdue', 'due_today', 'due_this_week' (within 7 days) or 'due_later'.
    Returns (tier, days until due); days are negative when overdue.
    """
    today = today or date.today()
    days = (expected_date - today).days
    if days < 0:
        return 'overdue', days
    if days == 0:
        return 'due_today', days
    if days <= DUE_SOON_DAYS:
        return 'due_this_week', days
    return 'due_later', days


def get_upcoming_deliveries_report(store, days_in_future=90, days_past_grace=7, today=None, language='en'):
    today = today or date.today()
    animal_map = build_animal_map(store)
    rows = []
    for record in get_upcoming_deliveries(store, days_in_future, days_past_grace, today):
        status, days = classify_delivery(parse_date(record.expected_delivery_date), today)
        dam_name, dam_tag = resolve_animal(animal_map, record.animal_id, language)
        rows.append({
            **record.to_dict(),
            'dam_name': dam_name,
            'dam_tag_number': dam_tag,
            'status': status,
            'days_until_due': days,
        })
    return rows


# --- Expenses ---

def get_insemination_expenses_for_period(store, period=None):
    return sum_expenses(filter_by_period(_inseminations(store), 'insemination_date', period))


def get_pregnancy_check_expenses_for_period(store, period=None):
    checks = _load(store, PREGNANCY_CHECKS, PregnancyCheckRecord)
    return sum_expenses(filter_by_period(checks, 'check_date', period))


def get_calving_expenses_for_period(store, period=None):
    return sum_expenses(filter_by_period(get_all_calving_records(store), 'calving_date', period))


def get_total_reproduction_expenses_for_period(store, period=None):
    """Each subtotal is rounded before they are added up, so the displayed parts add up to the total."""
    insemination = get_insemination_expenses_for_period(store, period)
    pregnancy_check = get_pregnancy_check_expenses_for_period(store, period)
    calving = get_calving_expenses_for_period(store, period)
    return {
        'insemination': insemination,
        'pregnancy_check': pregnancy_check,
        'calving': calving,
        'total': round_money(insemination + pregnancy_check + calving),
    }


def get_monthly_insemination_expenses(store, target_date):
    return get_insemination_expenses_for_period(store, period_for_month(target_date))


def get_monthly_pregnancy_check_expenses(store, target_date):
    return get_pregnancy_check_expenses_for_period(store, period_for_month(target_date))


def get_monthly_calving_expenses(store, target_date):
    return get_calving_expenses_for_period(store, period_for_month(target_date))


# --- Reports ---

def _calving_status(record, check, today):
    if check is not None:
        if check.result == 'pregnant':
            return 'calved' if record.calving_record_id else 'awaiting_calving'
        if check.result == 'not_pregnant':
            return 'not_pregnant'
        return 'recheck_pending'
    edd = parse_date(record.expected_delivery_date)
    if edd is not None and edd < today and not record.calving_record_id:
        return 'edd_passed_unknown'
    return 'pending_check'


def get_insemination_report(store, language='en', today=None):
    """Every insemination with its dam, latest check and a calving status."""
    today = today or date.today()
    animal_map = build_animal_map(store)
    checks = {c.id: c for c in _load(store, PREGNANCY_CHECKS, PregnancyCheckRecord)}

    rows = []
    for record in get_all_insemination_records(store):
        check = checks.get(record.pregnancy_check_id) if record.pregnancy_check_id else None
        dam_name, dam_tag = resolve_animal(animal_map, record.animal_id, language)
        rows.append({
            **record.to_dict(),
            'dam_name': dam_name,
            'dam_tag_number': dam_tag,
            'pregnancy_check_result': check.result if check else None,
            'pregnancy_check_date': check.check_date if check else None,
            'calving_status': _calving_status(record, check, today),
        })
    return rows


def get_per_animal_reproduction_summary(store, language='en'):
    """Insemination count, confirmed pregnancies and calves born for every known animal."""
    inseminations = _inseminations(store)
    checks = {c.id: c for c in _load(store, PREGNANCY_CHECKS, PregnancyCheckRecord)}
    calvings = {c.id: c for c in get_all_calving_records(store)}

    summaries = []
    for animal in get_all_animals(store):
        own = [r for r in inseminations if r.animal_id == animal.id]
        pregnancies = 0
        calves = 0
        for record in own:
            check = checks.get(record.pregnancy_check_id)
            if check is not None and check.result == 'pregnant':
                pregnancies += 1
            calving = calvings.get(record.calving_record_id)
            if calving is not None:
                calves += int(to_number(calving.number_of_calves) or 0)
        summaries.append({
            'animal_id': animal.id,
            'animal_name': animal.display_name(language),
            'animal_tag_number': animal.tag_number,
            'insemination_count': len(own),
            'successful_pregnancies': pregnancies,
            'calves_born': calves,
        })
    return summaries
