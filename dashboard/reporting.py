import datetime

from .config import CURRENCY
from .models import ExpenseSummary

_SYMBOLS = {"USD": "$", "CAD": "$", "EUR": "€", "GBP": "£"}


def format_currency(amount: float, currency: str = CURRENCY) -> str:
    symbol = _SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def report_filename(day: datetime.date) -> str:
    return f"expense-report-{day.isoformat()}.txt"


def render_expense_report(summary: ExpenseSummary, period_start: datetime.date,
                          period_end: datetime.date, generated_on: datetime.date,
                          year: int) -> str:
    """Plain-text expense report offered as a download."""
    fc = format_currency
    branch_lines = [
        f"{b.branch}: Products: {fc(b.products_cost)}, Services: {fc(b.services_cost)}, "
        f"Appointments: {fc(b.appointments_cost)}, Total: {fc(b.total_cost)}"
        for b in summary.branch_wise
    ]
    month_lines = [
        f"{m.month}: Products: {fc(m.products_cost)}, Services: {fc(m.services_cost)}, "
        f"Appointments: {fc(m.appointments_cost)}, Revenue: {fc(m.revenue)}, Profit: {fc(m.profit)}"
        for m in summary.month_wise
    ]
    category_lines = [
        f"{c.category}: Products: {fc(c.products_cost)}, Services: {fc(c.services_cost)}, "
        f"Total: {fc(c.total_cost)}"
        for c in summary.category_wise
    ]
    lines = [
        "COMPREHENSIVE EXPENSE ANALYSIS REPORT",
        f"Generated: {generated_on.isoformat()}",
        f"Period: {period_start.isoformat()} to {period_end.isoformat()}",
        "",
        "OVERALL SUMMARY",
        f"Total Products Cost: {fc(summary.total_products_cost)}",
        f"Total Services Cost: {fc(summary.total_services_cost)}",
        f"Total Appointments Cost: {fc(summary.total_appointments_cost)}",
        f"Total Expenses: {fc(summary.total_expenses)}",
        f"Total Revenue: {fc(summary.total_revenue)}",
        f"Total Profit: {fc(summary.total_profit)}",
        f"Profit Margin: {summary.profit_margin:.2f}%",
        "",
        "BRANCH-WISE EXPENSES",
        *branch_lines,
        "",
        f"MONTH-WISE EXPENSES ({year})",
        *month_lines,
        "",
        "CATEGORY-WISE EXPENSES",
        *category_lines,
    ]
    return "\n".join(lines) + "\n"
