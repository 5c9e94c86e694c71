import logging
from datetime import date

import pytest

from herdbook.animals import add_animal, delete_animal, update_animal
from herdbook.reproduction import (add_calving_record, add_insemination_record, add_pregnancy_check_record,
                                   classify_delivery, delete_calving_record, delete_insemination_record,
                                   delete_pregnancy_check_record, get_all_calving_records,
                                   get_all_pregnancy_check_records, get_insemination_record_by_id,
                                   get_insemination_report, get_per_animal_reproduction_summary,
                                   get_total_reproduction_expenses_for_period, get_upcoming_deliveries,
                                   get_upcoming_deliveries_report, update_insemination_record)
from herdbook.store import INSEMINATIONS
from herdbook.utils import Period


def _inseminate(store, animal, day, expense=None):
    return add_insemination_record(store, {
        'animal_id': animal.id,
        'insemination_date': day,
        'type': 'ai',
        'semen_details': 'Bull #42',
        'expense': expense,
    })


def _check(store, insemination, day, result, expense=None):
    return add_pregnancy_check_record(store, {
        'insemination_id': insemination.id,
        'animal_id': insemination.animal_id,
        'check_date': day,
        'result': result,
        'expense': expense,
    })


def _calving(store, insemination, day, calves=1, expense=None):
    return add_calving_record(store, {
        'insemination_id': insemination.id,
        'animal_id': insemination.animal_id,
        'calving_date': day,
        'number_of_calves': calves,
        'calving_ease': 'easy',
        'calves_data': [{'calf_tag_number': f'CALF-{i}', 'calf_gender': 'female'} for i in range(calves)],
        'expense': expense,
    })


class TestInseminations:

    def test_expected_delivery_date_from_species(self, store, cow, buffalo):
        assert _inseminate(store, cow, '2024-01-01').expected_delivery_date == '2024-10-10'
        assert _inseminate(store, buffalo, '2024-01-01').expected_delivery_date == '2024-11-11'

    def test_unknown_dam_writes_nothing(self, store):
        record = add_insemination_record(store, {'animal_id': 'missing', 'insemination_date': '2024-01-01'})
        assert record is None
        assert store.read_all(INSEMINATIONS) == []

    def test_species_without_gestation_period(self, store):
        camel = add_animal(store, {'name_en': 'Lali', 'species': 'camel', 'gender': 'female',
                                   'tag_number': 'X-1', 'date_of_birth': '2020-01-01'})
        assert _inseminate(store, camel, '2024-01-01') is None
        assert store.read_all(INSEMINATIONS) == []

    def test_invalid_date(self, store, cow):
        assert _inseminate(store, cow, 'last tuesday') is None

    def test_update_recomputes_expected_delivery_date(self, store, cow):
        record = _inseminate(store, cow, '2024-01-01')
        updated = update_insemination_record(store, record.id, {'insemination_date': '2024-02-01',
                                                                'vet_name': 'Dr. Aslam'})
        assert updated.expected_delivery_date == '2024-11-10'
        assert updated.vet_name == 'Dr. Aslam'
        assert get_insemination_record_by_id(store, record.id).expected_delivery_date == '2024-11-10'

    def test_update_uses_the_dams_current_species(self, store, cow):
        record = _inseminate(store, cow, '2024-01-01')
        update_animal(store, cow.id, {'species': 'goat'})
        updated = update_insemination_record(store, record.id, {'insemination_date': '2024-01-02'})
        assert updated.expected_delivery_date == '2024-05-31'

    def test_update_keeps_stale_date_when_dam_is_gone(self, store, cow, caplog):
        record = _inseminate(store, cow, '2024-01-01')
        delete_animal(store, cow.id)
        with caplog.at_level(logging.WARNING, logger='herdbook.reproduction'):
            updated = update_insemination_record(store, record.id, {'insemination_date': '2024-03-01'})
        assert updated.insemination_date == '2024-03-01'
        assert updated.expected_delivery_date == '2024-10-10'
        assert 'Could not recalculate EDD' in caplog.text

    def test_update_rejects_an_invalid_date(self, store, cow, caplog):
        record = _inseminate(store, cow, '2024-01-01')
        with caplog.at_level(logging.ERROR, logger='herdbook.reproduction'):
            assert update_insemination_record(store, record.id, {'insemination_date': '2024-02-30'}) is None
        assert 'Invalid insemination date' in caplog.text

        stored = get_insemination_record_by_id(store, record.id)
        assert stored.insemination_date == '2024-01-01'
        assert stored.expected_delivery_date == '2024-10-10'

    def test_update_logs_a_missing_gestation_period(self, store, cow, caplog):
        record = _inseminate(store, cow, '2024-01-01')
        update_animal(store, cow.id, {'species': 'camel'})
        with caplog.at_level(logging.WARNING, logger='herdbook.reproduction'):
            updated = update_insemination_record(store, record.id, {'insemination_date': '2024-02-01'})
        assert updated.expected_delivery_date == '2024-10-10'
        assert 'gestation period not defined for species camel' in caplog.text

    def test_update_cannot_overwrite_derived_fields(self, store, cow):
        record = _inseminate(store, cow, '2024-01-01')
        updated = update_insemination_record(store, record.id, {'expected_delivery_date': '2030-01-01',
                                                                'id': 'other'})
        assert updated.id == record.id
        assert updated.expected_delivery_date == '2024-10-10'

    def test_update_unknown_record(self, store):
        assert update_insemination_record(store, 'missing', {'notes': 'x'}) is None


class TestChecksAndCalvings:

    def test_latest_check_replaces_the_pointer(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01')
        first = _check(store, insemination, '2024-02-15', 'recheck')
        second = _check(store, insemination, '2024-03-01', 'pregnant')

        assert get_insemination_record_by_id(store, insemination.id).pregnancy_check_id == second.id
        assert {c.id for c in get_all_pregnancy_check_records(store)} == {first.id, second.id}

    def test_deleting_an_older_check_keeps_the_pointer(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01')
        first = _check(store, insemination, '2024-02-15', 'recheck')
        second = _check(store, insemination, '2024-03-01', 'pregnant')

        assert delete_pregnancy_check_record(store, first.id) is True
        assert get_insemination_record_by_id(store, insemination.id).pregnancy_check_id == second.id
        assert delete_pregnancy_check_record(store, second.id) is True
        assert get_insemination_record_by_id(store, insemination.id).pregnancy_check_id is None
        assert delete_pregnancy_check_record(store, second.id) is False

    def test_calving_sets_and_clears_the_pointer(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01')
        calving = _calving(store, insemination, '2024-10-08', calves=2)

        assert get_insemination_record_by_id(store, insemination.id).calving_record_id == calving.id
        stored, = get_all_calving_records(store)
        assert [c.calf_tag_number for c in stored.calves_data] == ['CALF-0', 'CALF-1']

        assert delete_calving_record(store, calving.id) is True
        assert get_insemination_record_by_id(store, insemination.id).calving_record_id is None

    def test_delete_insemination_cascades(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01')
        other = _inseminate(store, cow, '2023-01-01')
        _check(store, insemination, '2024-03-01', 'pregnant')
        _calving(store, insemination, '2024-10-08')
        kept_check = _check(store, other, '2023-03-01', 'pregnant')

        assert delete_insemination_record(store, insemination.id) is True
        assert get_insemination_record_by_id(store, insemination.id) is None
        assert [c.id for c in get_all_pregnancy_check_records(store)] == [kept_check.id]
        assert get_all_calving_records(store) == []
        assert delete_insemination_record(store, insemination.id) is False

    def test_deleting_the_dam_does_not_cascade(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01')
        delete_animal(store, cow.id)
        assert get_insemination_record_by_id(store, insemination.id) is not None


class TestDeliveries:

    @pytest.mark.parametrize('expected,tier,days', [
        (date(2024, 7, 5), 'overdue', -5),
        (date(2024, 7, 10), 'due_today', 0),
        (date(2024, 7, 11), 'due_this_week', 1),
        (date(2024, 7, 17), 'due_this_week', 7),
        (date(2024, 7, 18), 'due_later', 8),
    ])
    def test_classify_delivery(self, expected, tier, days):
        assert classify_delivery(expected, date(2024, 7, 10)) == (tier, days)

    def test_upcoming_deliveries_window_and_exclusions(self, store, cow, buffalo):
        today = date(2024, 10, 5)
        due_soon = _inseminate(store, cow, '2024-01-01')           # EDD 2024-10-10
        overdue = _inseminate(store, cow, '2023-12-20')            # EDD 2024-09-28
        _inseminate(store, cow, '2023-12-01')                      # EDD 2024-09-09, past the grace period
        _inseminate(store, cow, '2024-06-01')                      # EDD 2025-03-11, too far ahead
        not_pregnant = _inseminate(store, buffalo, '2023-11-25')   # EDD 2024-10-05
        _check(store, not_pregnant, '2024-01-20', 'not_pregnant')
        calved = _inseminate(store, buffalo, '2023-11-26')
        _calving(store, calved, '2024-10-01')

        upcoming = get_upcoming_deliveries(store, 90, 7, today=today)
        assert [r.id for r in upcoming] == [overdue.id, due_soon.id]

    def test_upcoming_deliveries_report(self, store, cow):
        today = date(2024, 10, 5)
        _inseminate(store, cow, '2024-01-01')

        row, = get_upcoming_deliveries_report(store, today=today)
        assert row['dam_name'] == 'Daisy'
        assert row['dam_tag_number'] == 'C-001'
        assert row['status'] == 'due_this_week'
        assert row['days_until_due'] == 5


class TestReproductionExpenses:

    def test_totals_by_kind_and_period(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01', expense=1500)
        _inseminate(store, cow, '2023-05-01', expense=1200)
        _check(store, insemination, '2024-02-15', 'pregnant', expense=300)
        _calving(store, insemination, '2024-10-08', expense='2000')

        assert get_total_reproduction_expenses_for_period(store, Period(2024)) == {
            'insemination': 1500,
            'pregnancy_check': 300,
            'calving': 2000,
            'total': 3800,
        }
        assert get_total_reproduction_expenses_for_period(store, Period(2024, 2))['total'] == 300
        assert get_total_reproduction_expenses_for_period(store)['insemination'] == 2700

    def test_subtotals_are_rounded_before_summing(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01', expense=0.004)
        _check(store, insemination, '2024-02-15', 'pregnant', expense=0.004)
        _calving(store, insemination, '2024-10-08', expense=0.004)

        totals = get_total_reproduction_expenses_for_period(store)
        assert totals['total'] == 0


class TestReproductionReports:

    def test_insemination_report_statuses(self, store, cow, buffalo):
        today = date(2024, 12, 1)
        calved = _inseminate(store, cow, '2024-01-01')
        _check(store, calved, '2024-02-15', 'pregnant')
        _calving(store, calved, '2024-10-08')
        awaiting = _inseminate(store, cow, '2024-06-01')
        _check(store, awaiting, '2024-07-15', 'pregnant')
        empty = _inseminate(store, buffalo, '2024-05-01')
        _check(store, empty, '2024-06-15', 'not_pregnant')
        recheck = _inseminate(store, buffalo, '2024-09-01')
        _check(store, recheck, '2024-10-15', 'recheck')
        lost_track = _inseminate(store, buffalo, '2023-06-01')
        pending = _inseminate(store, cow, '2024-11-01')

        statuses = {row['id']: row['calving_status'] for row in get_insemination_report(store, today=today)}
        assert statuses == {
            calved.id: 'calved',
            awaiting.id: 'awaiting_calving',
            empty.id: 'not_pregnant',
            recheck.id: 'recheck_pending',
            lost_track.id: 'edd_passed_unknown',
            pending.id: 'pending_check',
        }

    def test_insemination_report_rows(self, store, cow):
        insemination = _inseminate(store, cow, '2024-01-01')
        _check(store, insemination, '2024-02-15', 'pregnant')
        delete_animal(store, cow.id)

        row, = get_insemination_report(store, today=date(2024, 3, 1))
        assert row['dam_name'] == 'Unknown'
        assert row['dam_tag_number'] == 'N/A'
        assert row['pregnancy_check_result'] == 'pregnant'
        assert row['pregnancy_check_date'] == '2024-02-15'

    def test_per_animal_summary(self, store, cow, buffalo):
        first = _inseminate(store, cow, '2023-01-01')
        _check(store, first, '2023-02-15', 'pregnant')
        _calving(store, first, '2023-10-10', calves=2)
        second = _inseminate(store, cow, '2024-01-01')
        _check(store, second, '2024-02-15', 'not_pregnant')

        summaries = {s['animal_tag_number']: s for s in get_per_animal_reproduction_summary(store)}
        assert summaries['C-001']['insemination_count'] == 2
        assert summaries['C-001']['successful_pregnancies'] == 1
        assert summaries['C-001']['calves_born'] == 2
        assert summaries['B-007'] == {
            'animal_id': buffalo.id,
            'animal_name': 'Kali',
            'animal_tag_number': 'B-007',
            'insemination_count': 0,
            'successful_pregnancies': 0,
            'calves_born': 0,
        }
