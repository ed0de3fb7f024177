from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from waiverpdf.templates.defaults import (
    MEDIA_RELEASE_DESCRIPTION,
    PASSENGER_ACKNOWLEDGMENT,
    section_title_for,
)
from waiverpdf.types import TemplateBlock, WaiverTemplate, WaiverType


class BlockRole(str, Enum):
    introduction = 'introduction'
    section_title = 'section_title'
    clause = 'clause'
    media = 'media'
    acknowledgment = 'acknowledgment'


def classify_block(block: TemplateBlock, index: int) -> BlockRole:
    # Block 0 is the introduction no matter how it is labelled.
    if index == 0:
        return BlockRole.introduction
    token = f'{block.id} {block.label}'.lower()
    if 'title' in token:
        return BlockRole.section_title
    if 'media' in token:
        return BlockRole.media
    if 'acknowledg' in token:
        return BlockRole.acknowledgment
    return BlockRole.clause


@dataclass(frozen=True)
class TemplateSections:
    """Template blocks grouped by the part of the waiver they fill, order preserved."""

    introduction: str
    section_title: str
    clauses: list[str] = field(default_factory=list)
    media_description: str = MEDIA_RELEASE_DESCRIPTION
    acknowledgment: str | None = None


def split_template(template: WaiverTemplate) -> TemplateSections:
    introduction = ''
    section_title: str | None = None
    clauses: list[str] = []
    media_parts: list[str] = []
    acknowledgment_parts: list[str] = []

    for index, block in enumerate(template.blocks):
        role = classify_block(block, index)
        if role == BlockRole.introduction:
            introduction = block.template_text
        elif role == BlockRole.section_title and section_title is None:
            section_title = block.template_text.strip() or block.label
        elif role == BlockRole.media:
            media_parts.append(block.template_text)
        elif role == BlockRole.acknowledgment:
            acknowledgment_parts.append(block.template_text)
        else:
            # A second title-like block is content, not a heading
            clauses.append(block.template_text)

    acknowledgment: str | None = None
    if template.waiver_type == WaiverType.passenger:
        acknowledgment = '\n'.join(acknowledgment_parts) if acknowledgment_parts else PASSENGER_ACKNOWLEDGMENT
    else:
        clauses.extend(acknowledgment_parts)

    return TemplateSections(
        introduction=introduction,
        section_title=section_title or section_title_for(template.waiver_type),
        clauses=clauses,
        media_description='\n'.join(media_parts) if media_parts else MEDIA_RELEASE_DESCRIPTION,
        acknowledgment=acknowledgment,
    )
