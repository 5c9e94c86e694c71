import calendar
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

# 1 litre of milk weighs about 1.03 kg.
KG_PER_LITRE = 1.03
LITRES_PER_KG = 1 / KG_PER_LITRE

URDU_MONTHS = [
    "جنوری", "فروری", "مارچ", "اپریل", "مئی", "جون",
    "جولائی", "اگست", "ستمبر", "اکتوبر", "نومبر", "دسمبر",
]


# --- Identifiers and timestamps ---

def new_id():
    return uuid.uuid4().hex


def now_iso():
    return datetime.now(timezone.utc).isoformat()


# --- Tolerant parsing ---

def parse_date(value):
    """
    Parses a stored date (a 'YYYY-MM-DD' string, a full ISO datetime, or a date object).
    Returns a datetime.date, or None if the value is not a valid calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def to_number(value):
    """Returns value as a float, or None when it is missing or not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def round_money(value):
    return round(value, 2)


def sum_expenses(records, field_name='expense'):
    """Sums an optional money field across records, counting missing or malformed values as 0."""
    total = 0.0
    for record in records:
        total += to_number(getattr(record, field_name, None)) or 0.0
    return round_money(total)


# --- Unit conversion ---

def to_effective_quantity(quantity, from_unit, to_unit):
    """
    Converts a milk quantity between litres and kilograms.
    Only used to bring a milk record onto the unit its rate was defined for.
    """
    if from_unit == to_unit:
        return quantity
    if from_unit == 'litre' and to_unit == 'kg':
        return quantity * KG_PER_LITRE
    if from_unit == 'kg' and to_unit == 'litre':
        return quantity * LITRES_PER_KG
    return quantity


# --- Periods ---

@dataclass(frozen=True)
class Period:
    """An optional year / month (1-12) pair narrowing which records a report considers."""
    year: Optional[int] = None
    month: Optional[int] = None

    @property
    def is_all_time(self):
        return self.year is None and self.month is None


def _date_accessor(date_field):
    if callable(date_field):
        return date_field
    return lambda record: getattr(record, date_field, None)


def filter_by_period(records, date_field, period=None):
    """
    Keeps the records whose date falls in the period.

    - No period (or neither year nor month): every record is returned unchanged.
    - year only: records of that calendar year.
    - year and month: records of that calendar month.
    - month without year: every record is returned (callers only offer a month once a year is chosen).
    Records whose date cannot be parsed are left out.

    date_field is either an attribute name or a callable returning the record's date.
    """
    records = list(records)
    if period is None or period.is_all_time:
        return records

    if period.year is None:
        logger.debug("Month %s given without a year, not filtering.", period.month)
        return records

    get_date = _date_accessor(date_field)
    selected = []
    for record in records:
        record_date = parse_date(get_date(record))
        if record_date is None:
            continue
        if record_date.year != period.year:
            continue
        if period.month is not None and record_date.month != period.month:
            continue
        selected.append(record)
    return selected


def period_for_month(target_date):
    return Period(year=target_date.year, month=target_date.month)


def period_from_option(option, today=None):
    """Translates a dashboard period option into a Period (None for 'all_time')."""
    today = today or date.today()
    if option == 'current_month':
        return Period(today.year, today.month)
    if option == 'last_month':
        last_month = today - relativedelta(months=1)
        return Period(last_month.year, last_month.month)
    if option == 'current_year':
        return Period(today.year)
    if option == 'last_year':
        return Period(today.year - 1)
    if option == 'all_time':
        return None
    raise ValueError(f"Unknown period option: {option!r}")


def month_label(year, month, language='en', short=False):
    """'July 2024' / 'Jul 2024', or the Urdu month name followed by the year."""
    if language == 'ur':
        return f"{URDU_MONTHS[month - 1]} {year}"
    names = calendar.month_abbr if short else calendar.month_name
    return f"{names[month]} {year}"
