"""
Client-side filtering of already-fetched maraudes and merchants.
"""
from dataclasses import dataclass, field, replace
from datetime import date
from typing import List, Optional

from events import Channel
from labels import day_name

ALL_DAYS = [1, 2, 3, 4, 5, 6, 7]


def today_number(today=None):
    """ISO weekday of today, Monday=1 ... Sunday=7."""
    return (today or date.today()).isoweekday()


@dataclass
class FilterState:
    show_maraudes: bool = True
    show_merchants: bool = True
    maraude_status: str = ""
    merchant_category: str = ""
    radius: int = 10
    selected_days: List[int] = field(default_factory=lambda: [today_number()])

    def copy(self):
        return replace(self, selected_days=list(self.selected_days))


# ─────────────── Predicates ───────────────

def maraude_matches_status(maraude, status):
    return not status or maraude.status == status


def maraude_matches_days(maraude, selected_days):
    if not selected_days:
        return True
    if maraude.is_recurring:
        return maraude.day_of_week in selected_days
    scheduled = maraude.scheduled_day
    if scheduled is None:
        return False
    return scheduled.isoweekday() in selected_days


def merchant_passes(merchant, category):
    if category and merchant.category != category:
        return False
    return merchant.is_active


def filter_maraudes(maraudes, state):
    return [
        m for m in maraudes
        if maraude_matches_status(m, state.maraude_status)
        and maraude_matches_days(m, state.selected_days)
    ]


def filter_merchants(merchants, state):
    return [m for m in merchants if merchant_passes(m, state.merchant_category)]


def apply_filters(maraudes, merchants, state):
    return filter_maraudes(maraudes, state), filter_merchants(merchants, state)


def is_happening_today(maraude, today=None):
    today = today or date.today()
    if maraude.is_happening_today:
        return True
    if maraude.is_recurring:
        return maraude.day_of_week == today.isoweekday()
    return maraude.scheduled_day == today


# ─────────────── Filter panel ───────────────

class FilterPanel:
    """Holds the user's filter selection and announces every change."""

    def __init__(self, state: Optional[FilterState] = None):
        self.state = state or FilterState()
        self.changes = Channel()

    def subscribe(self, callback):
        return self.changes.subscribe(callback)

    def emit(self):
        self.changes.publish(self.state.copy())

    def is_selected(self, day_value):
        return day_value in self.state.selected_days

    def toggle_day(self, day_value):
        days = self.state.selected_days
        if day_value in days:
            days.remove(day_value)
        else:
            days.append(day_value)
            days.sort()
        self.emit()

    def select_all_days(self):
        self.state.selected_days = list(ALL_DAYS)
        self.emit()

    def clear_days(self):
        self.state.selected_days = []
        self.emit()

    def select_today(self, today=None):
        self.state.selected_days = [today_number(today)]
        self.emit()

    def set_days(self, days):
        self.state.selected_days = sorted(set(days))
        self.emit()

    def set_status(self, status):
        self.state.maraude_status = status or ""
        self.emit()

    def set_category(self, category):
        self.state.merchant_category = category or ""
        self.emit()

    def set_layer_visibility(self, show_maraudes=None, show_merchants=None):
        if show_maraudes is not None:
            self.state.show_maraudes = show_maraudes
        if show_merchants is not None:
            self.state.show_merchants = show_merchants
        self.emit()

    @property
    def selected_days_label(self):
        if not self.state.selected_days:
            return "Tous les jours"
        return ", ".join(day_name(v) for v in self.state.selected_days)


# ─────────────── List screens ───────────────

def _sort_date(maraude):
    scheduled = maraude.scheduled_day
    return scheduled.toordinal() if scheduled else 0


def search_maraudes(maraudes, search_term="", status="all", sort_by="date-desc"):
    results = list(maraudes)

    if search_term:
        term = search_term.lower()
        results = [
            m for m in results
            if term in (m.title or "").lower()
            or term in (m.address or "").lower()
            or term in (m.description or "").lower()
        ]

    if status and status != "all":
        results = [m for m in results if m.status == status]

    if sort_by == "date-desc":
        results.sort(key=_sort_date, reverse=True)
    elif sort_by == "date-asc":
        results.sort(key=_sort_date)
    elif sort_by == "title":
        results.sort(key=lambda m: (m.title or "").lower())
    elif sort_by == "beneficiaries":
        results.sort(key=lambda m: m.beneficiaries_helped or 0, reverse=True)
    return results


def search_associations(associations, query=""):
    query = query.strip().lower()
    if not query:
        return list(associations)
    return [
        a for a in associations
        if query in a.name.lower()
        or query in (a.email or "").lower()
        or query in (a.address or "").lower()
    ]
