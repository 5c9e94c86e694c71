"""Profit and loss: milk earnings set against feed, health and reproduction expenses."""
from datetime import date

from dateutil.relativedelta import relativedelta

from .feed import get_overall_feed_cost
from .health import get_health_expenses_for_period, get_monthly_health_expenses
from .milk import get_milk_earnings_for_month, get_milk_earnings_for_period
from .reproduction import (get_monthly_calving_expenses, get_monthly_insemination_expenses,
                           get_monthly_pregnancy_check_expenses, get_total_reproduction_expenses_for_period)
from .utils import month_label, period_for_month, round_money


def get_net_profit_or_loss(store, period=None):
    """Milk earnings minus feed, health and reproduction expenses for the period."""
    return (get_milk_earnings_for_period(store, period)
            - get_overall_feed_cost(store, period)
            - get_health_expenses_for_period(store, period)
            - get_total_reproduction_expenses_for_period(store, period)['total'])


def get_financial_summary(store, period=None):
    milk_earnings = get_milk_earnings_for_period(store, period)
    feed_cost = get_overall_feed_cost(store, period)
    health_expenses = get_health_expenses_for_period(store, period)
    reproduction = get_total_reproduction_expenses_for_period(store, period)

    total_expenses = feed_cost + health_expenses + reproduction['total']
    return {
        'milk_earnings': milk_earnings,
        'feed_cost': feed_cost,
        'health_expenses': health_expenses,
        'reproduction_expenses': reproduction,
        'total_expenses': round_money(total_expenses),
        'net_profit_loss': round_money(milk_earnings - total_expenses),
    }


def get_monthly_comparison(store, months=6, today=None, language='en'):
    """
    Earnings, expenses and net result for each of the last `months` calendar months,
    oldest month first, ending with the current month.
    """
    today = today or date.today()
    comparison = []
    for offset in range(months - 1, -1, -1):
        month_start = today.replace(day=1) - relativedelta(months=offset)

        milk_earnings = get_milk_earnings_for_month(store, month_start)
        feed_expenses = get_overall_feed_cost(store, period_for_month(month_start))
        health_expenses = get_monthly_health_expenses(store, month_start)
        reproduction_expenses = (get_monthly_insemination_expenses(store, month_start)
                                 + get_monthly_pregnancy_check_expenses(store, month_start)
                                 + get_monthly_calving_expenses(store, month_start))
        total_expenses = feed_expenses + health_expenses + reproduction_expenses

        comparison.append({
            'month': month_label(month_start.year, month_start.month, language, short=True),
            'milk_earnings': milk_earnings,
            'feed_expenses': feed_expenses,
            'health_expenses': health_expenses,
            'reproduction_expenses': reproduction_expenses,
            'total_expenses': total_expenses,
            'net_profit_loss': milk_earnings - total_expenses,
        })
    return comparison
