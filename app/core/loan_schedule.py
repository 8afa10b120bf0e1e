"""Installment schedule helpers: monthly due dates for a loan issued on a given date."""
from calendar import monthrange
from datetime import date
from decimal import Decimal

from app.core.utils import to_money


def get_monthly_due_dates(issue_date: date, tenure_months: int) -> list[date]:
    """
    Return ``tenure_months`` monthly due dates, the first one month after issue_date.
    Same day of month as issue_date, or the last day when the month is shorter.
    """
    due_dates: list[date] = []
    day = issue_date.day
    y, m = issue_date.year, issue_date.month
    for _ in range(max(0, int(tenure_months))):
        m += 1
        if m > 12:
            m, y = 1, y + 1
        last = monthrange(y, m)[1]
        due_dates.append(date(y, m, min(day, last)))
    return due_dates


def build_installments(issue_date: date, tenure_months: int, emi_due: Decimal) -> list[tuple[date, Decimal]]:
    """(due_date, due_amount) pairs for an equal-EMI loan."""
    amount = to_money(emi_due)
    return [(d, amount) for d in get_monthly_due_dates(issue_date, tenure_months)]
