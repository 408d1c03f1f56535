from recup.models.models import (
    Attachment,
    Competition,
    Official,
    OfficialRole,
    PaymentSession,
    PersonField,
    Phase,
    RegistrationDraft,
    RegistrationSession,
    TeamLeader,
    TeamMember,
    TeamRoster,
    MEMBER_FIELDS,
    OFFICIAL_FIELDS,
)

__all__ = [
    "Attachment",
    "Competition",
    "Official",
    "OfficialRole",
    "PaymentSession",
    "PersonField",
    "Phase",
    "RegistrationDraft",
    "RegistrationSession",
    "TeamLeader",
    "TeamMember",
    "TeamRoster",
    "MEMBER_FIELDS",
    "OFFICIAL_FIELDS",
]
