"""
Records exchanged with the maraude backend.

The backend speaks camelCase JSON; every record is built with ``from_dict``
and serialised back with ``to_payload``, which drops unset fields.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Literal, Optional

MaraudeStatus = Literal["planned", "in_progress", "completed", "cancelled"]
MerchantCategory = Literal[
    "restaurant", "cafe", "bakery", "pharmacy", "clothing_store",
    "supermarket", "laundromat", "health_center", "other",
]
Role = Literal["admin", "coordinator", "volunteer"]
ReportStatus = Literal["draft", "submitted", "validated"]
AlertType = Literal["medical", "social", "security", "housing", "other"]
Severity = Literal["low", "medium", "high", "critical"]


def _to_float(value):
    # DECIMAL columns come back as strings
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value, default=0):
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _compact(payload):
    return {key: value for key, value in payload.items() if value is not None}


def parse_date(value) -> Optional[date]:
    """Calendar date of an ISO date/datetime string, or None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


@dataclass
class Pagination:
    page: int = 1
    limit: int = 0
    total: int = 0
    pages: int = 0

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            page=_to_int(data.get("page"), 1),
            limit=_to_int(data.get("limit")),
            total=_to_int(data.get("total")),
            pages=_to_int(data.get("pages")),
        )


@dataclass
class Page:
    items: list
    pagination: Pagination


@dataclass
class Waypoint:
    latitude: float
    longitude: float
    order: int
    id: Optional[str] = None
    address: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            latitude=_to_float(data.get("latitude")),
            longitude=_to_float(data.get("longitude")),
            order=_to_int(data.get("order")),
            address=data.get("address"),
            name=data.get("name"),
        )

    def to_payload(self):
        return _compact({
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "order": self.order,
            "address": self.address,
            "name": self.name,
        })


@dataclass
class Association:
    id: str
    name: str
    email: str = ""
    description: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            email=data.get("email", ""),
            description=data.get("description"),
            phone=data.get("phone"),
            address=data.get("address"),
            website=data.get("website"),
            is_active=bool(data.get("isActive", True)),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_payload(self):
        return _compact({
            "name": self.name,
            "description": self.description,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "website": self.website,
            "isActive": self.is_active,
        })


@dataclass
class User:
    id: str
    first_name: str
    last_name: str
    email: str
    role: Role
    association_id: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            first_name=data.get("firstName", ""),
            last_name=data.get("lastName", ""),
            email=data.get("email", ""),
            role=data.get("role", "volunteer"),
            association_id=data.get("associationId"),
            phone=data.get("phone"),
            is_active=bool(data.get("isActive", True)),
        )

    def to_payload(self):
        return _compact({
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "role": self.role,
            "associationId": self.association_id,
            "phone": self.phone,
            "isActive": self.is_active,
        })

    @property
    def initials(self):
        return (self.first_name[:1] + self.last_name[:1]).upper()


@dataclass
class Merchant:
    id: str
    name: str
    category: MerchantCategory
    latitude: Optional[float]
    longitude: Optional[float]
    services: List[str] = field(default_factory=list)
    address: str = ""
    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    opening_hours: Dict[str, str] = field(default_factory=dict)
    special_instructions: Optional[str] = None
    contact_person: Optional[str] = None
    is_verified: bool = False
    is_active: bool = True

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            category=data.get("category", "other"),
            latitude=_to_float(data.get("latitude")),
            longitude=_to_float(data.get("longitude")),
            services=list(data.get("services") or []),
            address=data.get("address") or "",
            description=data.get("description"),
            phone=data.get("phone"),
            email=data.get("email"),
            website=data.get("website"),
            opening_hours=dict(data.get("openingHours") or {}),
            special_instructions=data.get("specialInstructions"),
            contact_person=data.get("contactPerson"),
            is_verified=bool(data.get("isVerified", False)),
            is_active=bool(data.get("isActive", True)),
        )


@dataclass
class MaraudeAction:
    id: Optional[str]
    title: str
    start_time: str = ""
    status: MaraudeStatus = "planned"
    description: Optional[str] = None
    start_latitude: Optional[float] = None
    start_longitude: Optional[float] = None
    address: Optional[str] = None
    waypoints: List[Waypoint] = field(default_factory=list)
    estimated_distance: Optional[float] = None
    estimated_duration: Optional[int] = None
    is_recurring: bool = False
    day_of_week: Optional[int] = None
    scheduled_date: Optional[str] = None
    end_time: Optional[str] = None
    participants_count: int = 0
    beneficiaries_helped: int = 0
    materials_distributed: Dict[str, int] = field(default_factory=dict)
    notes: Optional[str] = None
    is_active: bool = True
    association_id: Optional[str] = None
    association: Optional[Association] = None
    created_by: Optional[str] = None
    next_occurrence: Optional[str] = None
    is_happening_today: bool = False
    day_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        waypoints = [Waypoint.from_dict(w) for w in data.get("waypoints") or []]
        waypoints.sort(key=lambda w: w.order)
        association = data.get("association")
        day_of_week = data.get("dayOfWeek")
        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            description=data.get("description"),
            start_latitude=_to_float(data.get("startLatitude", data.get("latitude"))),
            start_longitude=_to_float(data.get("startLongitude", data.get("longitude"))),
            address=data.get("startAddress") or data.get("address"),
            waypoints=waypoints,
            estimated_distance=_to_float(data.get("estimatedDistance")),
            estimated_duration=_to_int(data.get("estimatedDuration"), None),
            is_recurring=bool(data.get("isRecurring", False)),
            day_of_week=_to_int(day_of_week, None),
            scheduled_date=data.get("scheduledDate"),
            start_time=data.get("startTime") or "",
            end_time=data.get("endTime"),
            status=data.get("status", "planned"),
            participants_count=_to_int(data.get("participantsCount")),
            beneficiaries_helped=_to_int(data.get("beneficiariesHelped")),
            materials_distributed=dict(data.get("materialsDistributed") or {}),
            notes=data.get("notes"),
            is_active=bool(data.get("isActive", True)),
            association_id=data.get("associationId"),
            association=Association.from_dict(association) if association else None,
            created_by=data.get("createdBy"),
            next_occurrence=data.get("nextOccurrence"),
            is_happening_today=bool(data.get("isHappeningToday", False)),
            day_name=data.get("dayName"),
        )

    @property
    def scheduled_day(self) -> Optional[date]:
        return parse_date(self.scheduled_date)

    @property
    def has_location(self):
        return self.start_latitude is not None and self.start_longitude is not None

    def to_payload(self):
        return _compact({
            "title": self.title,
            "description": self.description,
            "startLatitude": self.start_latitude,
            "startLongitude": self.start_longitude,
            "address": self.address,
            "waypoints": [w.to_payload() for w in self.waypoints] if self.waypoints else None,
            "estimatedDistance": self.estimated_distance,
            "estimatedDuration": self.estimated_duration,
            "isRecurring": self.is_recurring,
            "dayOfWeek": self.day_of_week if self.is_recurring else None,
            "scheduledDate": self.scheduled_date if not self.is_recurring else None,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "status": self.status,
            "participantsCount": self.participants_count,
            "notes": self.notes,
            "isActive": self.is_active,
        })


@dataclass
class DistributionType:
    id: str
    name: str
    category: str = "other"
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            category=data.get("category", "other"),
            icon=data.get("icon"),
            color=data.get("color"),
            is_active=bool(data.get("isActive", True)),
        )


@dataclass
class Distribution:
    distribution_type_id: str
    quantity: int
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            distribution_type_id=data.get("distributionTypeId", ""),
            quantity=_to_int(data.get("quantity")),
            notes=data.get("notes"),
        )

    def to_payload(self):
        return _compact({
            "distributionTypeId": self.distribution_type_id,
            "quantity": self.quantity,
            "notes": self.notes or None,
        })


@dataclass
class Alert:
    alert_type: AlertType
    severity: Severity
    situation_description: str
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None
    location_address: Optional[str] = None
    person_description: Optional[str] = None
    action_taken: Optional[str] = None
    follow_up_required: bool = False
    follow_up_notes: Optional[str] = None
    # widget key in the report form, never sent to the backend
    uid: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data):
        return cls(
            alert_type=data.get("alertType", ""),
            severity=data.get("severity", ""),
            situation_description=data.get("situationDescription", ""),
            location_latitude=_to_float(data.get("locationLatitude")),
            location_longitude=_to_float(data.get("locationLongitude")),
            location_address=data.get("locationAddress"),
            person_description=data.get("personDescription"),
            action_taken=data.get("actionTaken"),
            follow_up_required=bool(data.get("followUpRequired", False)),
            follow_up_notes=data.get("followUpNotes"),
        )

    def to_payload(self):
        return _compact({
            "alertType": self.alert_type,
            "severity": self.severity,
            "situationDescription": self.situation_description,
            "locationLatitude": self.location_latitude,
            "locationLongitude": self.location_longitude,
            "locationAddress": self.location_address or None,
            "personDescription": self.person_description or None,
            "actionTaken": self.action_taken or None,
            "followUpRequired": self.follow_up_required,
            "followUpNotes": self.follow_up_notes or None,
        })


@dataclass
class MaraudeReport:
    maraude_action_id: str
    report_date: str
    start_time: str
    end_time: str
    beneficiaries_count: int = 0
    volunteers_count: int = 1
    id: Optional[str] = None
    general_notes: Optional[str] = None
    difficulties_encountered: Optional[str] = None
    positive_points: Optional[str] = None
    urgent_situations_details: Optional[str] = None
    distributions: List[Distribution] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    status: ReportStatus = "draft"
    has_urgent_situations: bool = False
    creator_id: Optional[str] = None
    creator_association_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        creator = data.get("creator") or {}
        return cls(
            id=data.get("id"),
            maraude_action_id=data.get("maraudeActionId", ""),
            report_date=data.get("reportDate", ""),
            start_time=data.get("startTime", ""),
            end_time=data.get("endTime", ""),
            beneficiaries_count=_to_int(data.get("beneficiariesCount")),
            volunteers_count=_to_int(data.get("volunteersCount"), 1),
            general_notes=data.get("generalNotes"),
            difficulties_encountered=data.get("difficultiesEncountered"),
            positive_points=data.get("positivePoints"),
            urgent_situations_details=data.get("urgentSituationsDetails"),
            distributions=[Distribution.from_dict(d) for d in data.get("distributions") or []],
            alerts=[Alert.from_dict(a) for a in data.get("alerts") or []],
            status=data.get("status", "draft"),
            has_urgent_situations=bool(data.get("hasUrgentSituations", False)),
            creator_id=creator.get("id"),
            creator_association_id=creator.get("associationId"),
        )

    def to_payload(self):
        return _compact({
            "maraudeActionId": self.maraude_action_id,
            "reportDate": self.report_date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "beneficiariesCount": self.beneficiaries_count,
            "volunteersCount": self.volunteers_count,
            "generalNotes": self.general_notes or None,
            "difficultiesEncountered": self.difficulties_encountered or None,
            "positivePoints": self.positive_points or None,
            "urgentSituationsDetails": self.urgent_situations_details or None,
            "distributions": [d.to_payload() for d in self.distributions],
            "alerts": [a.to_payload() for a in self.alerts],
        })
