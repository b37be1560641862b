"""Input checks for the local participant's register/update flows."""

import re
from dataclasses import dataclass

from skillswap.errors import ValidationError
from skillswap.models import ContactChannels

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class Registration:
    name: str
    teach: str
    learn: str
    contacts: ContactChannels
    bio: str = ""


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def clean_contacts(twitter: str = "", farcaster: str = "", email: str = "") -> ContactChannels:
    return ContactChannels(
        twitter=(twitter or "").strip(),
        farcaster=(farcaster or "").strip(),
        email=(email or "").strip(),
    )


def validate_contacts(contacts: ContactChannels) -> None:
    if not contacts.any():
        raise ValidationError(
            "At least one contact method is required (Twitter, Farcaster, or Email)"
        )
    if contacts.email and not is_valid_email(contacts.email):
        raise ValidationError("Email format invalid")


def validate_skill_pair(teach: str, learn: str) -> None:
    """Skills compare case-insensitively here even though fingerprints do not."""
    if teach.strip().lower() == learn.strip().lower():
        raise ValidationError("Skill to teach must differ from skill to learn")


def validate_registration(
    name: str,
    teach: str,
    learn: str,
    twitter: str = "",
    farcaster: str = "",
    email: str = "",
    bio: str = "",
) -> Registration:
    """Return the trimmed registration or raise ValidationError."""
    name = (name or "").strip()
    teach = (teach or "").strip()
    learn = (learn or "").strip()

    if not name:
        raise ValidationError("Name is required")
    if not teach or not learn:
        raise ValidationError("Both skills are required")
    validate_skill_pair(teach, learn)

    contacts = clean_contacts(twitter, farcaster, email)
    validate_contacts(contacts)

    return Registration(
        name=name, teach=teach, learn=learn, contacts=contacts, bio=(bio or "").strip()
    )
