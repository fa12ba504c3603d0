from __future__ import annotations

import datetime
from datetime import timedelta, timezone

from pydantic import BaseModel, Field

from .models import Booking

TIME_RANGES = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class ServiceRevenue(BaseModel):
    service: str
    revenue: float
    bookings: int
    percentage: float


class DayRevenue(BaseModel):
    day: str
    revenue: float


class Analytics(BaseModel):
    time_range: str
    total_revenue: float = 0.0
    total_bookings: int = 0
    total_customers: int = 0
    revenue_by_service: list[ServiceRevenue] = Field(default_factory=list)
    revenue_by_day: list[DayRevenue] = Field(default_factory=list)


def build_analytics(bookings: list[Booking], time_range: str = "30d",
                    now: datetime.datetime | None = None) -> Analytics:
    """Client-side aggregation of bookings created within the last `time_range`."""
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range: {time_range!r}")
    now = now or datetime.datetime.now(timezone.utc)
    cutoff = now - timedelta(days=TIME_RANGES[time_range])

    window = [b for b in bookings if b.created_at is not None and cutoff <= b.created_at <= now]
    completed = [b for b in window if b.status == "completed"]
    total_revenue = sum(b.total_amount for b in completed)

    by_service: dict[str, list[float]] = {}
    by_day = {day: 0.0 for day in WEEKDAYS}
    for b in completed:
        bucket = by_service.setdefault(b.service_name or "Unknown Service", [0.0, 0])
        bucket[0] += b.total_amount
        bucket[1] += 1
        by_day[WEEKDAYS[b.created_at.weekday()]] += b.total_amount

    services = [
        ServiceRevenue(
            service=name,
            revenue=round(revenue, 2),
            bookings=count,
            percentage=round(revenue / total_revenue * 100, 1) if total_revenue > 0 else 0.0,
        )
        for name, (revenue, count) in by_service.items()
    ]
    # Return sorted list for nice display
    services.sort(key=lambda s: s.revenue, reverse=True)

    return Analytics(
        time_range=time_range,
        total_revenue=round(total_revenue, 2),
        total_bookings=len(window),
        total_customers=len({b.customer_id for b in window if b.customer_id}),
        revenue_by_service=services,
        revenue_by_day=[DayRevenue(day=d, revenue=round(v, 2)) for d, v in by_day.items()],
    )
