from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Raw capture timestamps arrive as epoch seconds, epoch millis, ISO text or datetimes.
RawTimestamp = Union[datetime, int, float, str, None]


class WaiverModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class WaiverType(str, Enum):
    passenger = 'passenger'
    representative = 'representative'


class TemplateStatus(str, Enum):
    draft = 'draft'
    published = 'published'
    archived = 'archived'


class MediaReleaseOption(str, Enum):
    full_consent = 'fullConsent'
    consent_with_initials = 'consentWithInitials'
    no_consent = 'noConsent'

    @classmethod
    def resolve(cls, value: 'MediaReleaseOption | str | None') -> 'MediaReleaseOption':
        """Map a form value to an option once, at data entry.

        Accepts enum values, the paper form's ``yes``/``no`` and the sentence
        text stored by older submissions.
        """
        if isinstance(value, cls):
            return value
        token = str(value or '').strip()
        for option in cls:
            if token == option.value or token == option.name:
                return option
        lowered = token.lower()
        if lowered in {'yes', 'y', 'true'}:
            return cls.full_consent
        if lowered in {'no', 'n', 'false'} or 'do not consent' in lowered:
            return cls.no_consent
        if 'initials instead' in lowered:
            return cls.consent_with_initials
        return cls.full_consent


class TemplateBlock(WaiverModel):
    id: str
    label: str
    template_text: str = ''
    parameters: list[str] = Field(default_factory=list)


class WaiverTemplate(WaiverModel):
    waiver_type: WaiverType
    version: str
    effective_date: str
    title: str
    blocks: list[TemplateBlock] = Field(default_factory=list)
    status: TemplateStatus | None = None


class PersonName(WaiverModel):
    first_name: str = ''
    last_name: str = ''

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'.strip()


class Passenger(PersonName):
    town: str = ''


class ContactInfo(WaiverModel):
    email: str = ''
    phone: str = ''


class SignatureCapture(WaiverModel):
    # data: URL, http(s) URL or local file path of the signature raster
    image: str | None = Field(
        default=None,
        validation_alias=AliasChoices('imageUrl', 'image'),
    )
    timestamp: RawTimestamp = None


class WitnessSignature(SignatureCapture):
    name: str = ''


class Signatures(WaiverModel):
    passenger: SignatureCapture = Field(default_factory=SignatureCapture)
    witness: WitnessSignature = Field(default_factory=WitnessSignature)


class WaiverSubmission(WaiverModel):
    waiver_id: str
    waiver_type: WaiverType = WaiverType.passenger
    passenger: Passenger
    representative: PersonName | None = None
    contact: ContactInfo = Field(default_factory=ContactInfo)
    agreements: dict[str, bool] = Field(default_factory=dict)
    media_release: MediaReleaseOption = MediaReleaseOption.full_consent
    signatures: Signatures = Field(default_factory=Signatures)
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None

    @field_validator('media_release', mode='before')
    @classmethod
    def _resolve_media_release(cls, value):
        return MediaReleaseOption.resolve(value)

    @property
    def is_representative(self) -> bool:
        return self.waiver_type == WaiverType.representative and self.representative is not None


class OverlayMetadata(WaiverModel):
    waiver_id: str
    signed_date: date
    uploaded_by_email: str = ''
    upload_date: date | None = None
