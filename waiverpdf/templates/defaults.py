from __future__ import annotations

import re

from waiverpdf.templates.interpolation import extract_placeholders
from waiverpdf.types import MediaReleaseOption, TemplateBlock, TemplateStatus, WaiverTemplate, WaiverType


PASSENGER_TITLE = 'Passenger Application Confidentiality and Application Agreement'
REPRESENTATIVE_TITLE = 'Informed Consent for Legal Guardian/Power of Attorney'

PASSENGER_SECTION_TITLE = 'Waiver of Liability'
REPRESENTATIVE_SECTION_TITLE = 'Informed Consent'
MEDIA_RELEASE_TITLE = 'Media Release'

PASSENGER_INTRODUCTION = (
    'I, {{firstName}} {{lastName}} of the town of {{town}}, have received, read and understand '
    'the Cycling Without Age Passenger Handbook and Confidentiality guidelines, and agree to abide '
    'by the procedures listed therein and I attest that all of the information I have provided '
    'herein is accurate and complete. I understand and agree that acceptance into the program is '
    'entirely at the discretion of the Cycling Without Age Society program coordinator.'
)

REPRESENTATIVE_INTRODUCTION = (
    'I, {{representativeFirstName}} {{representativeLastName}}, the undersigned, attest that I am '
    'the Legal Guardian/Power of Attorney of {{firstName}} {{lastName}} of the town of {{town}}, who '
    'is taking part in the Cycling Without Age Program as a Passenger. I have received, read and '
    'understand the Cycling Without Age Passenger Handbook and Confidentiality guidelines, and agree '
    'to abide by the procedures listed therein. I attest that all of the information I have provided '
    'herein is accurate and complete. I understand and agree that acceptance into the program is '
    'entirely at the discretion of the Cycling Without Age Society program coordinator.'
)

# Leading clause of each introduction, printed in bold when the rendered text starts with it.
PASSENGER_INTRO_PREFIX = 'I, {{firstName}} {{lastName}} of the town of {{town}},'
REPRESENTATIVE_INTRO_PREFIX = (
    'I, {{representativeFirstName}} {{representativeLastName}}, the undersigned, attest that I am '
    'the Legal Guardian/Power of Attorney of {{firstName}} {{lastName}} of the town of {{town}},'
)

PASSENGER_CLAUSES = (
    'I, the undersigned, am the person named herein taking part in the Cycling Without Age Program '
    'as a passenger.',
    'I understand and agree that there are inherent risks associated with participation in this '
    'activity, that my participation is voluntary and that I am physically fit enough to participate '
    'in the activity.',
    'I accept all responsibility for my participation including the possibility of personal injury, '
    'death, property damage or any kind notwithstanding that the injury, loss may have been '
    'contributed to or occasioned by the negligence of the Cycling Without Age Society and its '
    'officers, directors, employed, members, agents, assigns, legal representative and successors.',
    'I do hereby indemnify and hold harmless the Cycling Without Age Society, its officers, directors, '
    'employees, members, agents, assigns, legal representatives and successors and any and all '
    'business associates and partners involved in the above noted activity and each of them, their '
    'owner, officers, and employees hereby waiving all claims for damage now or in the future arising '
    'from any loss, accident, injury or death which may be caused by or arise from participation of '
    'the individual named herein during this event; and agree to assume all risks for the activity '
    'noted above that the individual named herein has agreed to participate in.',
)

REPRESENTATIVE_CLAUSES = (
    'I the undersigned attest that I am the Legal Guardian/Power of Attorney of the person named '
    'herein taking part in the Cycling Without Age Program as a Passenger.',
    'I understand and agree that there are inherent risks associated with participation in this '
    'activity, that participation is voluntary and that the participant is physically fit enough to '
    'participate in the activity.',
    'I accept all responsibility for their participation including the possibility of personal '
    'injury, death, property damage of any kind notwithstanding that the injury, loss may have been '
    'contributed to or occasioned by the negligence of the Cycling Without Age Society - Sidney and '
    'its officers, directors, employed, members, agents, assigns, legal representative, and '
    'successors.',
    'I do hereby indemnify and hold harmless the Cycling Without Age Society - Sidney, its officers, '
    'directors, employees, members, agents, assigns, legal representatives and successors and any '
    'and all business associates and partners involved in the above noted activity and each of them, '
    'their owner, officers, and employees hereby waiving all claims for damage now or in the future '
    'arising from any loss, accident, injury or death which may be caused by or arise from '
    'participation of the individual named herein during this event; and agree to assume all risks '
    'for the activity noted above that the individual named herein has agreed to participate in.',
    'My signature acknowledges that I have had sufficient time to read and understand this informed '
    'consent. By signing it I agree to the above conditions and allow the individual named herein to '
    'participate in the activity named. I understand that the conditions are binding on my heirs, '
    'next of kin, executors, administrators, and successors.',
)

PASSENGER_ACKNOWLEDGMENT = (
    'My signature acknowledges that I am over the age of 18 and had sufficient time to read and '
    'understand this waiver. I have had the opportunity to seek my own legal advice and that I '
    'understand and agree to the conditions stated in this document and that they are binding on my '
    'heirs, next of kin, executors, administrators and successors.'
)

MEDIA_RELEASE_DESCRIPTION = (
    'Cycling Without Age Society occasionally takes photos/videos of their rides and passengers for '
    'the purpose of promoting their program on digital and print media including social networks, '
    'CWAS website, other news and advertising.'
)

_PASSENGER_MEDIA_SENTENCES = {
    MediaReleaseOption.full_consent: (
        'I consent to Cycling Without Age Society using recordings of me participating in their '
        'program for the purposes listed above.'
    ),
    MediaReleaseOption.consent_with_initials: (
        'I consent to Cycling Without Age Society using recordings of me participating in their '
        'program for the purposes listed above. However, I request that my full name not be shown, '
        'and I prefer to be identified by initials instead.'
    ),
    MediaReleaseOption.no_consent: 'I do not consent. Do not use my likeness in any manner.',
}

_REPRESENTATIVE_MEDIA_SENTENCES = {
    MediaReleaseOption.full_consent: (
        'I consent to Cycling Without Age Society using recordings of {{firstName}} participating '
        'in their program for the purposes listed above.'
    ),
    MediaReleaseOption.consent_with_initials: (
        'I consent to Cycling Without Age Society using recordings of {{firstName}} participating '
        'in their program for the purposes listed above. However, I request that their full name '
        'not be shown, and they should be identified by initials instead.'
    ),
    MediaReleaseOption.no_consent: "I do not consent. Do not use {{firstName}}'s likeness in any manner.",
}


def media_release_sentence(option: MediaReleaseOption, *, representative: bool) -> str:
    """Canonical sentence for ``option``; representative wording carries a ``{{firstName}}`` slot."""
    sentences = _REPRESENTATIVE_MEDIA_SENTENCES if representative else _PASSENGER_MEDIA_SENTENCES
    return sentences[option]


def section_title_for(waiver_type: WaiverType) -> str:
    if waiver_type == WaiverType.representative:
        return REPRESENTATIVE_SECTION_TITLE
    return PASSENGER_SECTION_TITLE


def intro_prefix_for(waiver_type: WaiverType) -> str:
    if waiver_type == WaiverType.representative:
        return REPRESENTATIVE_INTRO_PREFIX
    return PASSENGER_INTRO_PREFIX


def _slugify(label: str) -> str:
    return re.sub(r'[^a-z0-9]+', '-', label.lower()).strip('-') or 'block'


def make_block(label: str, template_text: str, *, index: int) -> TemplateBlock:
    return TemplateBlock(
        id=f'{_slugify(label)}-{index}',
        label=label,
        template_text=template_text,
        parameters=extract_placeholders(template_text),
    )


def build_default_template(
    waiver_type: WaiverType,
    *,
    version: str,
    effective_date: str,
) -> WaiverTemplate:
    if waiver_type == WaiverType.representative:
        title = REPRESENTATIVE_TITLE
        sections = [
            ('Introduction', REPRESENTATIVE_INTRODUCTION),
            ('Section Title', REPRESENTATIVE_SECTION_TITLE),
            *[(f'Clause {n}', text) for n, text in enumerate(REPRESENTATIVE_CLAUSES, start=1)],
        ]
    else:
        title = PASSENGER_TITLE
        sections = [
            ('Introduction', PASSENGER_INTRODUCTION),
            ('Section Title', PASSENGER_SECTION_TITLE),
            *[(f'Clause {n}', text) for n, text in enumerate(PASSENGER_CLAUSES, start=1)],
            ('Acknowledgment', PASSENGER_ACKNOWLEDGMENT),
        ]

    return WaiverTemplate(
        waiver_type=waiver_type,
        version=version,
        effective_date=effective_date,
        title=title,
        status=TemplateStatus.draft,
        blocks=[make_block(label, text, index=i) for i, (label, text) in enumerate(sections)],
    )
