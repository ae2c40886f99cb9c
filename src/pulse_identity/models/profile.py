"""
pulse_identity/models/profile.py — Профили клинициста и организации.

Здесь один раз описаны:
    • seed-структуры (что берём из метаданных Identity при создании);
    • значения по умолчанию для новых строк профиля;
    • имена таблиц хранилища.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import Field

from pulse_identity.models.common import PulseBase
from pulse_identity.models.enums import CredentialingStatus, UserRole
from pulse_identity.models.identity import Identity

CLINICIAN_PROFILES = "clinician_profiles"
ORGANIZATION_PROFILES = "organization_profiles"
CLINICIAN_AVAILABILITY = "clinician_availability"

PROFILE_TABLES: dict[UserRole, str] = {
    UserRole.CLINICIAN: CLINICIAN_PROFILES,
    UserRole.ORGANIZATION: ORGANIZATION_PROFILES,
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _pick(identity: Identity, *keys: str) -> str:
    """Первое непустое значение из метаданных (snake_case или старый camelCase)."""
    for key in keys:
        value = identity.meta(key)
        if value is not None:
            return str(value)
    return ""


def _address(prefix: str) -> dict[str, str]:
    return {f"{prefix}_{part}": "" for part in ("street", "city", "state", "zip_code")}


class ClinicianSeed(PulseBase):
    """Данные для нового профиля клинициста."""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    date_of_birth: str | None = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "ClinicianSeed":
        return cls(
            first_name=_pick(identity, "first_name", "firstName", "given_name"),
            last_name=_pick(identity, "last_name", "lastName", "family_name"),
            email=identity.email,
            phone=_pick(identity, "phone"),
            date_of_birth=_pick(identity, "date_of_birth", "dateOfBirth") or None,
        )

    def to_row(self, user_id: str) -> dict[str, Any]:
        """Строка ``clinician_profiles`` со значениями по умолчанию."""
        return {
            "user_id": user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "date_of_birth": self.date_of_birth,
            "bio": "",
            "specialties": [],
            "additional_certifications": "",
            "licenses": [],
            "education": [],
            "work_history": [],
            "references": [],
            "years_experience": 0,
            "travel_radius": 25,
            "work_preference": "both",
            "credentialing_status": CredentialingStatus.PENDING.value,
            "rating": 0,
            "total_jobs": 0,
            **_address("address"),
        }


class OrganizationSeed(PulseBase):
    """Данные для нового профиля организации."""
    organization_name: str = ""
    contact_person_name: str = ""
    email: str = ""
    phone: str = ""
    organization_type: str = ""

    @classmethod
    def from_identity(cls, identity: Identity) -> "OrganizationSeed":
        return cls(
            organization_name=_pick(identity, "organization_name", "organizationName"),
            contact_person_name=_pick(
                identity, "contact_person_name", "contactPersonName", "full_name", "name"
            ),
            email=identity.email,
            phone=_pick(identity, "phone"),
            organization_type=_pick(identity, "organization_type", "organizationType"),
        )

    def to_row(self, user_id: str) -> dict[str, Any]:
        """Строка ``organization_profiles`` со значениями по умолчанию."""
        return {
            "user_id": user_id,
            "organization_name": self.organization_name,
            "contact_person_name": self.contact_person_name,
            "email": self.email,
            "phone": self.phone,
            "organization_type": self.organization_type,
            **_address("address"),
            **_address("billing_address"),
            "payment_methods": [],
            "is_verified": False,
            "verification_documents": [],
        }


ProfileSeed = Union[ClinicianSeed, OrganizationSeed]


def seed_from_identity(identity: Identity, role: UserRole) -> ProfileSeed | None:
    """Seed для роли; для ``admin`` профиля нет → None."""
    if role == UserRole.CLINICIAN:
        return ClinicianSeed.from_identity(identity)
    if role == UserRole.ORGANIZATION:
        return OrganizationSeed.from_identity(identity)
    return None


def availability_row(user_id: str) -> dict[str, Any]:
    """Пустое расписание: по одному пустому списку слотов на день недели."""
    row: dict[str, Any] = {"user_id": user_id}
    row.update({day: [] for day in WEEKDAYS})
    return row


class ProvisionResult(PulseBase):
    """Результат ensure_profile."""
    created: bool
    profile: dict[str, Any] | None = Field(default=None)
