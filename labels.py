"""
Display tables for maraude statuses, merchant categories and services
"""
from collections import namedtuple

DayOfWeek = namedtuple("DayOfWeek", ["value", "name", "short_name"])

DAYS_OF_WEEK = [
    DayOfWeek(1, "Lundi", "Lun"),
    DayOfWeek(2, "Mardi", "Mar"),
    DayOfWeek(3, "Mercredi", "Mer"),
    DayOfWeek(4, "Jeudi", "Jeu"),
    DayOfWeek(5, "Vendredi", "Ven"),
    DayOfWeek(6, "Samedi", "Sam"),
    DayOfWeek(7, "Dimanche", "Dim"),
]

DAY_NAMES = {day.value: day.name for day in DAYS_OF_WEEK}

DAY_BUTTON_LABELS = {1: "L", 2: "Ma", 3: "Me", 4: "Je", 5: "Ve", 6: "Sa", 7: "Di"}

MARAUDE_STATUSES = {
    "planned": {
        "label": "Planifiée",
        "color": "#3b82f6",  # blue
    },
    "in_progress": {
        "label": "En cours",
        "color": "#f59e0b",  # orange
    },
    "completed": {
        "label": "Terminée",
        "color": "#10b981",  # green
    },
    "cancelled": {
        "label": "Annulée",
        "color": "#ef4444",  # red
    },
}

DEFAULT_STATUS_COLOR = "#6b7280"  # gray
MERCHANT_COLOR = "#10b981"

DEFAULT_MERCHANT_ICON = '<path d="M19 21V5a2 2 0 00-2-2H7a2 2 0 00-2 2v16l7-3 7 3z"/>'

MERCHANT_CATEGORIES = {
    "restaurant": {
        "label": "Restaurant",
        "icon": '<path d="M8 22h8v-9l4.159-6.238A1 1 0 0019.414 5H4.586a1 1 0 00-.745 1.762L8 13v9z"/>',
    },
    "cafe": {
        "label": "Café",
        "icon": '<path d="M5 11h14v2a6 6 0 01-6 6H7a6 6 0 01-6-6v-2zm1-4V2h12v5M8 7v4m4-4v4m4-4v4"/>',
    },
    "bakery": {
        "label": "Boulangerie",
        "icon": '<path d="M6 2l3 6 3-6 3 6 3-6v18a2 2 0 01-2 2H8a2 2 0 01-2-2V2z"/>',
    },
    "pharmacy": {
        "label": "Pharmacie",
        "icon": DEFAULT_MERCHANT_ICON,
    },
    "supermarket": {
        "label": "Supermarché",
        "icon": '<path d="M7 4V2a1 1 0 011-1h8a1 1 0 011 1v2h4a1 1 0 011 1v3H2V5a1 1 0 011-1h4zM6 9v10a2 2 0 002 2h8a2 2 0 002-2V9H6z"/>',
    },
    "health_center": {
        "label": "Centre de santé",
        "icon": '<path d="M12 2l8 4v10.5c0 5.99-4.99 10.5-8 10.5s-8-4.51-8-10.5V6l8-4z"/>',
    },
    "laundromat": {
        "label": "Laverie",
        "icon": '<path d="M4 6h16v2H4V6zm0 5h16v6a2 2 0 01-2 2H6a2 2 0 01-2-2v-6z"/>',
    },
    "clothing_store": {
        "label": "Magasin de vêtements",
        "icon": '<path d="M16 7a4 4 0 11-8 0 4 4 0 018 0zM12 14a7 7 0 00-7 7h14a7 7 0 00-7-7z"/>',
    },
    "other": {
        "label": "Autre",
        "icon": DEFAULT_MERCHANT_ICON,
    },
}

MERCHANT_SERVICES = {
    "free_coffee": "Café gratuit",
    "free_meal": "Repas gratuit",
    "restroom": "Toilettes",
    "wifi": "WiFi",
    "phone_charging": "Recharge téléphone",
    "hygiene_kit": "Kit hygiène",
    "first_aid": "Premiers secours",
    "information": "Information",
    "shower": "Douche",
    "food_distribution": "Distribution alimentaire",
    "medical_consultation": "Consultation médicale",
}

REPORT_STATUSES = {"draft": "Brouillon", "submitted": "Soumis", "validated": "Validé"}

DISTRIBUTION_CATEGORIES = {
    "meal": "Alimentation",
    "hygiene": "Hygiène",
    "clothing": "Vêtements",
    "medical": "Médical",
    "other": "Autres",
}

ALERT_TYPES = {
    "medical": "Médical",
    "social": "Social",
    "security": "Sécurité",
    "housing": "Logement",
    "other": "Autre",
}

SEVERITY_LEVELS = {"low": "Faible", "medium": "Moyenne", "high": "Élevée", "critical": "Critique"}

ROLES = {"admin": "Administrateur", "coordinator": "Coordinateur", "volunteer": "Bénévole"}


def status_label(status):
    entry = MARAUDE_STATUSES.get(status)
    return entry["label"] if entry else status


def status_color(status):
    entry = MARAUDE_STATUSES.get(status)
    return entry["color"] if entry else DEFAULT_STATUS_COLOR


def category_label(category):
    entry = MERCHANT_CATEGORIES.get(category)
    return entry["label"] if entry else category


def category_icon(category):
    entry = MERCHANT_CATEGORIES.get(category)
    return entry["icon"] if entry else DEFAULT_MERCHANT_ICON


def service_label(service):
    return MERCHANT_SERVICES.get(service, service)


def day_name(day_value):
    return DAY_NAMES.get(day_value, f"Jour {day_value}")
