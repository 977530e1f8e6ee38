from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    label: str


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def end_of_month(value: date) -> date:
    return value.replace(day=days_in_month(value.year, value.month))


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    total_months = value.month - 1 + months
    year = value.year + total_months // 12
    month = total_months % 12 + 1
    day = min(value.day, days_in_month(year, month))
    return date(year, month, day)


def next_day(value: date) -> date:
    return value + timedelta(days=1)


def format_label_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def _span(start: date, end: date) -> str:
    return f"({format_label_date(start)} – {format_label_date(end)})"


def _check_month(fiscal_start_month: int) -> None:
    if not 1 <= fiscal_start_month <= 12:
        raise ValueError("Fiscal start month must be between 1 and 12")


def fiscal_year_label(fiscal_start_month: int, start: date) -> str:
    if fiscal_start_month == 1:
        return f"FY {start.year}"
    return f"FY {start.year}-{start.year + 1}"


def fiscal_year_start(fiscal_start_month: int, reference: date) -> date:
    _check_month(fiscal_start_month)
    if reference.month >= fiscal_start_month:
        return date(reference.year, fiscal_start_month, 1)
    return date(reference.year - 1, fiscal_start_month, 1)


def fiscal_year_range(fiscal_start_month: int, reference: date) -> DateRange:
    start = fiscal_year_start(fiscal_start_month, reference)
    end = end_of_month(add_months(start, 11))
    label = fiscal_year_label(fiscal_start_month, start)
    return DateRange(start, end, f"{label} {_span(start, end)}")


def previous_fiscal_year_range(fiscal_start_month: int, reference: date) -> DateRange:
    current_start = fiscal_year_start(fiscal_start_month, reference)
    start = add_months(current_start, -12)
    end = end_of_month(add_months(current_start, -1))
    label = fiscal_year_label(fiscal_start_month, start)
    return DateRange(start, end, f"{label} {_span(start, end)}")


def _quarter_start(fiscal_start_month: int, reference: date) -> tuple[date, int]:
    fy_start = fiscal_year_start(fiscal_start_month, reference)
    quarter_start = fy_start
    quarter_num = 1
    for offset in range(4):
        candidate = add_months(fy_start, offset * 3)
        if candidate <= reference:
            quarter_start = candidate
            quarter_num = offset + 1
    return quarter_start, quarter_num


def fiscal_quarter_range(fiscal_start_month: int, reference: date) -> DateRange:
    start, quarter_num = _quarter_start(fiscal_start_month, reference)
    end = end_of_month(add_months(start, 2))
    return DateRange(start, end, f"Q{quarter_num} {_span(start, end)}")


def previous_fiscal_quarter_range(
    fiscal_start_month: int, reference: date
) -> DateRange:
    current_start, _ = _quarter_start(fiscal_start_month, reference)
    start = add_months(current_start, -3)
    end = end_of_month(add_months(start, 2))

    # The previous quarter may belong to the previous fiscal year.
    fy_start = fiscal_year_start(fiscal_start_month, start)
    months_from_fy_start = (start.year - fy_start.year) * 12 + (
        start.month - fy_start.month
    )
    quarter_num = months_from_fy_start // 3 + 1
    return DateRange(start, end, f"Q{quarter_num} {_span(start, end)}")


def fiscal_ytd_range(fiscal_start_month: int, reference: date) -> DateRange:
    start = fiscal_year_start(fiscal_start_month, reference)
    return DateRange(start, reference, f"YTD {_span(start, reference)}")


def calendar_year_range(reference: date) -> DateRange:
    start = date(reference.year, 1, 1)
    end = date(reference.year, 12, 31)
    return DateRange(start, end, f"Calendar Year {reference.year} {_span(start, end)}")


def preset_date_range(
    preset: str, fiscal_start_month: int, reference: date
) -> Optional[DateRange]:
    if preset == "current_fy":
        return fiscal_year_range(fiscal_start_month, reference)
    if preset == "previous_fy":
        return previous_fiscal_year_range(fiscal_start_month, reference)
    if preset == "current_quarter":
        return fiscal_quarter_range(fiscal_start_month, reference)
    if preset == "previous_quarter":
        return previous_fiscal_quarter_range(fiscal_start_month, reference)
    if preset == "fiscal_ytd":
        return fiscal_ytd_range(fiscal_start_month, reference)
    if preset == "calendar_year":
        return calendar_year_range(reference)
    return None


def resolve_period(
    preset: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    fiscal_start_month: int,
    today: date,
) -> DateRange:
    if preset == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return DateRange(start_date, end_date, f"Custom {_span(start_date, end_date)}")

    resolved = preset_date_range(preset or "current_fy", fiscal_start_month, today)
    if resolved is None:
        raise ValueError(f"Unknown period preset: {preset}")
    return resolved
