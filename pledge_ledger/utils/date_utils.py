"""Date manipulation utilities"""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta


def add_weeks(from_date: date, weeks: int) -> date:
    return from_date + timedelta(days=7 * weeks)


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months (Jan 31 + 1 = Feb 28/29)"""
    return from_date + relativedelta(months=months)


def add_years(from_date: date, years: int) -> date:
    """Add calendar years; Feb 29 lands on Feb 28 in non-leap years"""
    return from_date + relativedelta(years=years)
