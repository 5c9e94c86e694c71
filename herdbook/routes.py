from datetime import date, datetime

from flask import Blueprint, current_app, jsonify, request

from . import animals, db, feed, financials, health, milk, reproduction
from .models import (ANIMAL_GENDERS, ANIMAL_SPECIES, ANIMAL_STATUSES, CALVING_EASES, FEED_TYPE_UNITS,
                     HEALTH_RECORD_TYPES, INSEMINATION_TYPES, MILK_UNITS, PREGNANCY_RESULTS, TIMES_OF_DAY,
                     MilkSettings)
from .store import get_store
from .utils import Period, period_from_option, round_money, to_number

# Create a Blueprint. 'api' is the name of the blueprint.
api = Blueprint('api', __name__)


class InvalidRequest(ValueError):
    """Raised by the request helpers below; turned into a 400 response."""


@api.errorhandler(InvalidRequest)
def handle_bad_request(error):
    return jsonify({'error': str(error)}), 400


# --- Request helpers ---

def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest('Request body must be a JSON object.')
    return data


def _require(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise InvalidRequest(f"Missing required fields: {', '.join(missing)}")


def _check_date(data, field, required=True):
    value = data.get(field)
    if value in (None, ''):
        if required:
            raise InvalidRequest(f"Missing required field: '{field}'")
        return
    try:
        datetime.strptime(value, '%Y-%m-%d')
    except (TypeError, ValueError):
        raise InvalidRequest(f"Invalid date for '{field}'. Please use YYYY-MM-DD.")


def _check_choice(data, field, choices):
    if data.get(field) not in choices:
        raise InvalidRequest(f"'{field}' must be one of: {', '.join(choices)}")


def _check_number(data, field, required=True):
    value = data.get(field)
    if value in (None, '') and not required:
        return
    if to_number(value) is None:
        raise InvalidRequest(f"'{field}' must be a number.")


def _int_arg(name, default=None):
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidRequest(f"'{name}' must be an integer.")


def _period_from_args():
    """
    Reads the optional 'year' and 'month' query parameters, or a named 'period'
    (current_month, last_month, current_year, last_year, all_time).
    """
    option = request.args.get('period')
    if option:
        try:
            return period_from_option(option)
        except ValueError as e:
            raise InvalidRequest(str(e))

    year = _int_arg('year')
    month = _int_arg('month')
    if month is not None and not 1 <= month <= 12:
        raise InvalidRequest("'month' must be between 1 and 12.")
    if year is None and month is None:
        return None
    return Period(year=year, month=month)


def _language():
    return 'ur' if request.args.get('lang') == 'ur' else 'en'


def _date_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise InvalidRequest(f"Invalid '{name}'. Please use YYYY-MM-DD.")


def _server_error(exc):
    db.session.rollback()
    current_app.logger.exception("Unexpected error while handling %s", request.path)
    return jsonify({'error': f'An unexpected error occurred: {str(exc)}'}), 500


# --- General Routes ---

@api.route('/')
def home():
    """A simple test route to confirm the API is running."""
    return "The Herdbook backend is running!"


# --- Animals ---

@api.route('/animals', methods=['GET'])
def list_animals():
    return jsonify([a.to_dict() for a in animals.get_all_animals(get_store())])


@api.route('/animals', methods=['POST'])
def add_animal():
    """Registers a new animal. Expects name_en, species, gender, tag_number and date_of_birth."""
    data = _json_body()
    _require(data, 'name_en', 'species', 'gender', 'tag_number')
    _check_date(data, 'date_of_birth')
    _check_choice(data, 'species', ANIMAL_SPECIES)
    _check_choice(data, 'gender', ANIMAL_GENDERS)
    data.setdefault('status', 'active')
    _check_choice(data, 'status', ANIMAL_STATUSES)
    data.setdefault('name_ur', '')
    data.setdefault('breed', '')

    try:
        animal = animals.add_animal(get_store(), data)
        return jsonify({'message': 'Animal added successfully!', 'animal': animal.to_dict()}), 201
    except Exception as e:
        return _server_error(e)


@api.route('/animals/<animal_id>', methods=['GET'])
def get_animal(animal_id):
    animal = animals.get_animal_by_id(get_store(), animal_id)
    if animal is None:
        return jsonify({'error': 'Animal not found.'}), 404
    return jsonify(animal.to_dict())


@api.route('/animals/<animal_id>', methods=['PATCH'])
def update_animal(animal_id):
    data = _json_body()
    if 'species' in data:
        _check_choice(data, 'species', ANIMAL_SPECIES)
    if 'gender' in data:
        _check_choice(data, 'gender', ANIMAL_GENDERS)
    if 'status' in data:
        _check_choice(data, 'status', ANIMAL_STATUSES)
    if 'date_of_birth' in data:
        _check_date(data, 'date_of_birth')

    try:
        animal = animals.update_animal(get_store(), animal_id, data)
    except Exception as e:
        return _server_error(e)
    if animal is None:
        return jsonify({'error': 'Animal not found.'}), 404
    return jsonify({'message': 'Animal updated successfully!', 'animal': animal.to_dict()})


@api.route('/animals/<animal_id>', methods=['DELETE'])
def delete_animal(animal_id):
    """Deletes an animal. Its milk, feed, health and breeding records are kept."""
    if not animals.delete_animal(get_store(), animal_id):
        return jsonify({'error': 'Animal not found.'}), 404
    return jsonify({'message': 'Animal deleted.'})


# --- Milk ---

@api.route('/milk/settings', methods=['GET'])
def get_milk_settings():
    return jsonify(milk.get_milk_settings(get_store()).to_dict())


@api.route('/milk/settings', methods=['PUT'])
def save_milk_settings():
    """Saves the milk rate. Only milk logged from now on uses the new rate."""
    data = _json_body()
    _check_number(data, 'rate_per_unit')
    _check_choice(data, 'default_unit', MILK_UNITS)
    settings = milk.save_milk_settings(
        get_store(), MilkSettings(rate_per_unit=float(data['rate_per_unit']), default_unit=data['default_unit']))
    return jsonify({'message': 'Milk settings saved.', 'settings': settings.to_dict()})


@api.route('/milk/records', methods=['GET'])
def list_milk_records():
    """Lists milk records, optionally only those of a given 'date' or 'animal_id'."""
    store = get_store()
    day = _date_arg('date')
    animal_id = request.args.get('animal_id')
    if day is not None:
        records = milk.get_milk_records_by_date(store, day)
    elif animal_id:
        records = milk.get_milk_records_by_animal_id(store, animal_id)
    else:
        records = milk.get_all_milk_records(store)
    return jsonify([r.to_dict() for r in records])


@api.route('/milk/records', methods=['POST'])
def add_milk_record():
    data = _json_body()
    _require(data, 'animal_id')
    _check_date(data, 'date')
    _check_choice(data, 'time_of_day', TIMES_OF_DAY)
    _check_number(data, 'quantity')
    _check_choice(data, 'unit', MILK_UNITS)

    store = get_store()
    try:
        record = milk.add_milk_record(store, data, milk.get_milk_settings(store))
        return jsonify({
            'message': 'Milk record added successfully!',
            'milk_record': record.to_dict(),
            'income': round_money(milk.calculate_record_income(record)),
        }), 201
    except Exception as e:
        return _server_error(e)


@api.route('/milk/records/<record_id>', methods=['DELETE'])
def delete_milk_record(record_id):
    if not milk.delete_milk_record(get_store(), record_id):
        return jsonify({'error': 'Milk record not found.'}), 404
    return jsonify({'message': 'Milk record deleted.'})


@api.route('/milk/summary', methods=['GET'])
def milk_summary():
    return jsonify(milk.get_overall_milk_summary(get_store(), _period_from_args()))


@api.route('/milk/summary/animals', methods=['GET'])
def milk_summary_per_animal():
    return jsonify(milk.get_milk_summary_per_animal(get_store(), _period_from_args(), _language()))


@api.route('/milk/trend', methods=['GET'])
def milk_trend():
    days = _int_arg('days', current_app.config['DAILY_TREND_DAYS'])
    if days < 1:
        raise InvalidRequest("'days' must be at least 1.")
    return jsonify(milk.get_daily_income_trend(get_store(), days))


# --- Feed ---

@api.route('/feed/records', methods=['GET'])
def list_feed_records():
    store = get_store()
    day = _date_arg('date')
    if day is not None:
        summary = feed.get_feed_summary_for_date(store, day)
        return jsonify({'total_cost': summary['total_cost'], 'records': [r.to_dict() for r in summary['records']]})
    return jsonify([r.to_dict() for r in feed.get_feed_records_filtered(store, _period_from_args())])


@api.route('/feed/records', methods=['POST'])
def add_feed_record():
    data = _json_body()
    _require(data, 'animal_id')
    _check_date(data, 'date')
    _check_choice(data, 'feed_type', tuple(FEED_TYPE_UNITS))
    _check_number(data, 'quantity')
    _check_number(data, 'cost')

    try:
        record = feed.add_feed_record(get_store(), data)
        return jsonify({'message': 'Feed record added successfully!', 'feed_record': record.to_dict()}), 201
    except Exception as e:
        return _server_error(e)


@api.route('/feed/records/<record_id>', methods=['DELETE'])
def delete_feed_record(record_id):
    if not feed.delete_feed_record(get_store(), record_id):
        return jsonify({'error': 'Feed record not found.'}), 404
    return jsonify({'message': 'Feed record deleted.'})


@api.route('/feed/report', methods=['GET'])
def feed_report():
    return jsonify(feed.get_feed_report(get_store(), _period_from_args(), _language()))


@api.route('/feed/summary/animals', methods=['GET'])
def feed_summary_per_animal():
    return jsonify(feed.get_per_animal_feed_summary(get_store(), _period_from_args(), _language()))


# --- Health ---

@api.route('/health/records', methods=['GET'])
def list_health_records():
    store = get_store()
    day = _date_arg('date')
    animal_id = request.args.get('animal_id')
    if day is not None:
        records = health.get_health_records_by_date(store, day)
    elif animal_id:
        records = health.get_health_records_by_animal_id(store, animal_id)
    else:
        records = health.get_all_health_records(store)
    return jsonify([r.to_dict() for r in records])


@api.route('/health/records', methods=['POST'])
def add_health_record():
    """Logs a health event. Treatments must name the medication given."""
    data = _json_body()
    _require(data, 'animal_id')
    _check_choice(data, 'type', HEALTH_RECORD_TYPES)
    _check_date(data, 'date')
    _check_date(data, 'next_due_date', required=False)
    _check_number(data, 'expense', required=False)
    if data['type'] == 'treatment' and not data.get('medication'):
        raise InvalidRequest("Treatments require 'medication'.")

    try:
        record = health.add_health_record(get_store(), data)
        return jsonify({'message': 'Health record added successfully!', 'health_record': record.to_dict()}), 201
    except Exception as e:
        return _server_error(e)


@api.route('/health/records/<record_id>', methods=['DELETE'])
def delete_health_record(record_id):
    if not health.delete_health_record(get_store(), record_id):
        return jsonify({'error': 'Health record not found.'}), 404
    return jsonify({'message': 'Health record deleted.'})


@api.route('/health/upcoming', methods=['GET'])
def upcoming_health_events():
    return jsonify([r.to_dict() for r in health.get_upcoming_health_events(get_store())])


@api.route('/health/expenses', methods=['GET'])
def health_expenses():
    return jsonify({'total_expenses': health.get_health_expenses_for_period(get_store(), _period_from_args())})


@api.route('/health/summary/animals', methods=['GET'])
def health_summary_per_animal():
    return jsonify(health.get_per_animal_health_summary(get_store(), _period_from_args(), _language()))


# --- Reproduction ---

@api.route('/reproduction/inseminations', methods=['GET'])
def list_inseminations():
    store = get_store()
    animal_id = request.args.get('animal_id')
    if animal_id:
        records = reproduction.get_insemination_records_by_animal(store, animal_id)
    else:
        records = reproduction.get_all_insemination_records(store)
    return jsonify([r.to_dict() for r in records])


@api.route('/reproduction/inseminations', methods=['POST'])
def add_insemination():
    """Logs an insemination. The expected delivery date is derived from the dam's species."""
    data = _json_body()
    _require(data, 'animal_id', 'semen_details')
    _check_date(data, 'insemination_date')
    _check_choice(data, 'type', INSEMINATION_TYPES)
    _check_number(data, 'expense', required=False)

    try:
        record = reproduction.add_insemination_record(get_store(), data)
    except Exception as e:
        return _server_error(e)
    if record is None:
        return jsonify({'error': 'Dam not found or gestation period undefined for its species.'}), 400
    return jsonify({'message': 'Insemination recorded successfully!', 'insemination': record.to_dict()}), 201


@api.route('/reproduction/inseminations/<record_id>', methods=['GET'])
def get_insemination(record_id):
    record = reproduction.get_insemination_record_by_id(get_store(), record_id)
    if record is None:
        return jsonify({'error': 'Insemination record not found.'}), 404
    return jsonify(record.to_dict())


@api.route('/reproduction/inseminations/<record_id>', methods=['PATCH'])
def update_insemination(record_id):
    data = _json_body()
    if 'insemination_date' in data:
        _check_date(data, 'insemination_date')
    if 'type' in data:
        _check_choice(data, 'type', INSEMINATION_TYPES)
    _check_number(data, 'expense', required=False)

    try:
        record = reproduction.update_insemination_record(get_store(), record_id, data)
    except Exception as e:
        return _server_error(e)
    if record is None:
        return jsonify({'error': 'Insemination record not found.'}), 404
    return jsonify({'message': 'Insemination updated successfully!', 'insemination': record.to_dict()})


@api.route('/reproduction/inseminations/<record_id>', methods=['DELETE'])
def delete_insemination(record_id):
    """Deletes an insemination together with its pregnancy checks and calvings."""
    if not reproduction.delete_insemination_record(get_store(), record_id):
        return jsonify({'error': 'Insemination record not found.'}), 404
    return jsonify({'message': 'Insemination and its linked records deleted.'})


@api.route('/reproduction/inseminations/<record_id>/pregnancy-checks', methods=['POST'])
def add_pregnancy_check(record_id):
    store = get_store()
    insemination = reproduction.get_insemination_record_by_id(store, record_id)
    if insemination is None:
        return jsonify({'error': 'Insemination record not found.'}), 404

    data = _json_body()
    _check_date(data, 'check_date')
    _check_choice(data, 'result', PREGNANCY_RESULTS)
    _check_number(data, 'expense', required=False)
    data.update(insemination_id=insemination.id, animal_id=insemination.animal_id)

    try:
        check = reproduction.add_pregnancy_check_record(store, data)
        return jsonify({'message': 'Pregnancy check recorded successfully!', 'pregnancy_check': check.to_dict()}), 201
    except Exception as e:
        return _server_error(e)


@api.route('/reproduction/pregnancy-checks/<check_id>', methods=['DELETE'])
def delete_pregnancy_check(check_id):
    if not reproduction.delete_pregnancy_check_record(get_store(), check_id):
        return jsonify({'error': 'Pregnancy check not found.'}), 404
    return jsonify({'message': 'Pregnancy check deleted.'})


@api.route('/reproduction/inseminations/<record_id>/calvings', methods=['POST'])
def add_calving(record_id):
    store = get_store()
    insemination = reproduction.get_insemination_record_by_id(store, record_id)
    if insemination is None:
        return jsonify({'error': 'Insemination record not found.'}), 404

    data = _json_body()
    _check_date(data, 'calving_date')
    _check_number(data, 'number_of_calves')
    _check_choice(data, 'calving_ease', CALVING_EASES)
    _check_number(data, 'expense', required=False)
    if not isinstance(data.get('calves_data', []), list):
        raise InvalidRequest("'calves_data' must be a list.")
    data.update(insemination_id=insemination.id, animal_id=insemination.animal_id)

    try:
        calving = reproduction.add_calving_record(store, data)
        return jsonify({'message': 'Calving recorded successfully!', 'calving': calving.to_dict()}), 201
    except Exception as e:
        return _server_error(e)


@api.route('/reproduction/calvings/<calving_id>', methods=['DELETE'])
def delete_calving(calving_id):
    if not reproduction.delete_calving_record(get_store(), calving_id):
        return jsonify({'error': 'Calving record not found.'}), 404
    return jsonify({'message': 'Calving record deleted.'})


@api.route('/reproduction/upcoming-deliveries', methods=['GET'])
def upcoming_deliveries():
    """Deliveries due within 'days' days (default 90) or overdue by at most 'grace' days (default 7)."""
    days = _int_arg('days', current_app.config['UPCOMING_DELIVERY_DAYS'])
    grace = _int_arg('grace', current_app.config['DELIVERY_GRACE_DAYS'])
    return jsonify(reproduction.get_upcoming_deliveries_report(
        get_store(), days, grace, today=date.today(), language=_language()))


@api.route('/reproduction/expenses', methods=['GET'])
def reproduction_expenses():
    return jsonify(reproduction.get_total_reproduction_expenses_for_period(get_store(), _period_from_args()))


@api.route('/reproduction/report', methods=['GET'])
def insemination_report():
    return jsonify(reproduction.get_insemination_report(get_store(), _language()))


@api.route('/reproduction/summary/animals', methods=['GET'])
def reproduction_summary_per_animal():
    return jsonify(reproduction.get_per_animal_reproduction_summary(get_store(), _language()))


# --- Financial reports ---

@api.route('/reports/financial', methods=['GET'])
def financial_summary():
    return jsonify(financials.get_financial_summary(get_store(), _period_from_args()))


@api.route('/reports/monthly-comparison', methods=['GET'])
def monthly_comparison():
    months = _int_arg('months', current_app.config['COMPARISON_MONTHS'])
    if months < 1:
        raise InvalidRequest("'months' must be at least 1.")
    return jsonify(financials.get_monthly_comparison(get_store(), months, language=_language()))
