from __future__ import annotations

import io
import logging
from datetime import datetime, timezone

import httpx
import pymupdf as fitz
import pytest
from pypdf import PdfReader
from reportlab.lib.utils import ImageReader

from waiverpdf.pdf import assets, formatting
from waiverpdf.pdf.compositor import (
    INFO_MIN_VALUE_FONT_SIZE,
    INFO_MIN_WIDTH,
    PAGE_HEIGHT,
    PAGE_MARGIN,
    SIGNATURE_PLACEHOLDER,
    compose_waiver,
    compose_waiver_pdf,
    layout_info_box,
)
from waiverpdf.pdf.fonts import resolve_fonts
from waiverpdf.pdf.measure import FONT_REGULAR
from waiverpdf.types import (
    MediaReleaseOption,
    Passenger,
    SignatureCapture,
    Signatures,
    TemplateBlock,
    WaiverTemplate,
    WaiverType,
    WitnessSignature,
)


BOTTOM_LIMIT = PAGE_HEIGHT - PAGE_MARGIN


def _page_texts(pdf_bytes: bytes) -> list[str]:
    doc = fitz.open(stream=pdf_bytes, filetype='pdf')
    try:
        return [' '.join(page.get_text().split()) for page in doc]
    finally:
        doc.close()


def _template_with_clauses(clauses: list[str], *, intro: str = 'I, {{firstName}} {{lastName}} of {{town}}, agree to the terms below.') -> WaiverTemplate:
    blocks = [
        TemplateBlock(id='intro', label='Introduction', template_text=intro),
        TemplateBlock(id='section-title', label='Section Title', template_text='Waiver of Liability'),
    ]
    blocks.extend(
        TemplateBlock(id=f'clause-{index}', label=f'Clause {index}', template_text=text)
        for index, text in enumerate(clauses, start=1)
    )
    return WaiverTemplate(
        waiver_type=WaiverType.passenger,
        version='2.1',
        effective_date='2025-03-05',
        title='Passenger Application Confidentiality and Application Agreement',
        blocks=blocks,
    )


def test_compose_returns_pdf(passenger_template, submission, settings):
    result = compose_waiver(passenger_template, submission, settings=settings, logo=None)

    assert result.pdf_bytes.startswith(b'%PDF')
    assert result.page_count == len(PdfReader(io.BytesIO(result.pdf_bytes)).pages)
    assert compose_waiver_pdf(passenger_template, submission, settings=settings, logo=None) == result.pdf_bytes


def test_introduction_is_interpolated(submission, settings):
    template = _template_with_clauses(['Clause one.', 'Clause two.', 'Clause three.', 'Clause four.'])
    text = ' '.join(_page_texts(compose_waiver_pdf(template, submission, settings=settings, logo=None)))

    assert 'I, Jane Doe of Springfield' in text
    assert '{{' not in text


def test_default_passenger_waiver_content(passenger_template, submission, settings):
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, submission, settings=settings, logo=None)))

    assert 'Cycling Without Age Society' in text
    assert 'Passenger Application Confidentiality and Application Agreement' in text
    assert 'I, Jane Doe of the town of Springfield,' in text
    assert 'Waiver of Liability' in text
    assert 'Media Release' in text
    assert 'I consent to Cycling Without Age Society using recordings of me' in text
    assert 'over the age of 18' in text
    assert 'Passenger (Jane Doe):' in text
    assert 'Witness (John Smith):' in text
    for fragment in ('Waiver ID:', 'PAS-7K3M9Q2XJD', 'Created:', '1 May 2024', 'Expires:', '1 May 2025'):
        assert fragment in text


def test_signature_timestamps_use_render_zone(passenger_template, submission, settings):
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, submission, settings=settings, logo=None)))

    assert text.count('Signed on:') == 2
    assert '2024-05-01 10:00:00 UTC' in text
    assert '2024-05-01 10:05:00 UTC' in text


def test_representative_waiver_content(representative_template, representative_submission, settings):
    text = ' '.join(
        _page_texts(compose_waiver_pdf(representative_template, representative_submission, settings=settings, logo=None))
    )

    assert 'I, Mary Doe, the undersigned, attest that I am the Legal Guardian/Power of Attorney of Jane Doe' in text
    assert 'Informed Consent' in text
    assert 'Legal Representative (Mary Doe):' in text
    assert 'recordings of Jane participating' in text
    assert 'over the age of 18' not in text


@pytest.mark.parametrize(
    ('option', 'expected'),
    [
        (MediaReleaseOption.consent_with_initials, 'identified by initials instead'),
        (MediaReleaseOption.no_consent, 'I do not consent. Do not use my likeness in any manner.'),
    ],
)
def test_media_release_option_sentence(passenger_template, submission, settings, option, expected):
    chosen = submission.model_copy(update={'media_release': option})
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, chosen, settings=settings, logo=None)))

    assert expected in text


def test_missing_signature_images_render_placeholder(passenger_template, submission, settings):
    unsigned = submission.model_copy(
        update={
            'signatures': Signatures(
                passenger=SignatureCapture(image=None, timestamp=None),
                witness=WitnessSignature(name='', image='data:image/png;base64,AAAA'),
            )
        }
    )
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, unsigned, settings=settings, logo=None)))

    assert text.count(SIGNATURE_PLACEHOLDER) == 2
    assert 'Witness:' in text
    assert 'N/A' in text


def test_signature_images_are_embedded(passenger_template, submission, settings):
    pdf_bytes = compose_waiver_pdf(passenger_template, submission, settings=settings, logo=None)
    doc = fitz.open(stream=pdf_bytes, filetype='pdf')
    try:
        images = [image for page in doc for image in page.get_images(full=True)]
        text = ' '.join(page.get_text() for page in doc)
    finally:
        doc.close()

    assert images
    assert SIGNATURE_PLACEHOLDER not in text


def test_logo_is_drawn_when_available(passenger_template, submission, settings, signature_png):
    unsigned = submission.model_copy(update={'signatures': Signatures()})
    without_logo = compose_waiver_pdf(passenger_template, unsigned, settings=settings, logo=None)
    with_logo = compose_waiver_pdf(
        passenger_template,
        unsigned,
        settings=settings,
        logo=ImageReader(io.BytesIO(signature_png)),
    )

    def image_count(pdf_bytes: bytes) -> int:
        doc = fitz.open(stream=pdf_bytes, filetype='pdf')
        try:
            return len(doc[0].get_images(full=True))
        finally:
            doc.close()

    assert image_count(without_logo) == 0
    assert image_count(with_logo) == 1


def test_pdf_metadata(passenger_template, submission, representative_template, representative_submission, settings):
    reader = PdfReader(io.BytesIO(compose_waiver_pdf(passenger_template, submission, settings=settings, logo=None)))
    assert reader.metadata.title == 'Passenger Waiver - Jane Doe'
    assert reader.metadata.author == 'Cycling Without Age Society'
    assert reader.metadata.creator == settings.app_name

    reader = PdfReader(
        io.BytesIO(compose_waiver_pdf(representative_template, representative_submission, settings=settings, logo=None))
    )
    assert reader.metadata.title == 'Representative Waiver - Jane Doe'


def test_footer_on_every_page(submission, settings):
    clauses = [f'Clause {n}: ' + 'The participant accepts the inherent risks of the ride. ' * 6 for n in range(40)]
    result = compose_waiver(_template_with_clauses(clauses), submission, settings=settings, logo=None)
    texts = _page_texts(result.pdf_bytes)

    assert result.page_count >= 2
    assert len(texts) == result.page_count
    for number, text in enumerate(texts, start=1):
        assert f'Page {number} of {result.page_count}' in text
        assert 'CWAS-PAS(2.1)' in text
        assert '5 March 2025' in text


def test_placements_stay_inside_printable_area(submission, settings, measurer):
    clauses = [f'Clause {n}: ' + 'Riders follow the pilot instructions at all times. ' * 4 for n in range(50)]
    result = compose_waiver(_template_with_clauses(clauses), submission, settings=settings, measurer=measurer, logo=None)

    for placement in result.placements:
        assert placement.top >= PAGE_MARGIN - 1e-6
        assert placement.bottom <= BOTTOM_LIMIT + 1e-6
        assert 0 <= placement.page_index < result.page_count


def test_signature_block_never_splits(submission, settings, measurer):
    moved_to_fresh_page = 0
    for count in range(0, 60):
        clauses = [f'Short clause {n}.' for n in range(count)]
        result = compose_waiver(_template_with_clauses(clauses), submission, settings=settings, measurer=measurer, logo=None)

        signatures = result.placements_of('signatures')
        assert len(signatures) == 1
        block = signatures[0]
        assert block.page_index == result.page_count - 1
        assert block.top >= PAGE_MARGIN - 1e-6
        assert block.bottom <= BOTTOM_LIMIT + 1e-6

        preceding = [item for item in result.placements if item.kind != 'signatures']
        if block.page_index > preceding[-1].page_index:
            assert block.top == pytest.approx(PAGE_MARGIN)
            moved_to_fresh_page += 1

    assert moved_to_fresh_page > 0


def test_clause_taller_than_a_page_flows_across_pages(submission, settings, measurer):
    giant = ' '.join(['indemnify'] * 3000)
    result = compose_waiver(_template_with_clauses([giant, 'After the giant clause.']), submission, settings=settings, measurer=measurer, logo=None)

    clause_pages = {item.page_index for item in result.placements_of('clause')}
    assert len(clause_pages) >= 2
    assert result.page_count >= 3


def test_long_waiver_id_is_kept_whole(passenger_template, submission, settings):
    long_id = 'PAS-' + '7K3M9Q2XJD' * 2 + '7K3M9Q2X'
    text = ' '.join(
        _page_texts(
            compose_waiver_pdf(
                passenger_template,
                submission.model_copy(update={'waiver_id': long_id}),
                settings=settings,
                logo=None,
            )
        )
    )

    assert long_id in text


def test_explicit_expiry_is_printed(passenger_template, submission, settings):
    expiring = submission.model_copy(update={'expires_at': datetime(2026, 1, 15, tzinfo=timezone.utc)})
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, expiring, settings=settings, logo=None)))

    assert '15 January 2026' in text


def test_invariant_output_is_reproducible(passenger_template, submission, settings):
    first = compose_waiver_pdf(passenger_template, submission, settings=settings, logo=None)
    second = compose_waiver_pdf(passenger_template, submission, settings=settings, logo=None)

    assert first == second


def test_info_box_grows_with_content(measurer):
    short = layout_info_box([('Waiver ID:', 'PAS-1')], measurer=measurer, max_width=240)
    wide = layout_info_box([('Waiver ID:', 'PAS-' + 'W' * 30)], measurer=measurer, max_width=240)

    assert short.width == pytest.approx(INFO_MIN_WIDTH)
    assert wide.width > short.width
    assert wide.rows[0].lines == ['PAS-' + 'W' * 30]
    assert wide.rows[0].font_size == 9.0


def test_info_box_shrinks_id_then_truncates(measurer):
    fits_when_shrunk = 'PAS-' + 'W' * 20
    box = layout_info_box([('Waiver ID:', fits_when_shrunk)], measurer=measurer, max_width=INFO_MIN_WIDTH)
    row = box.rows[0]
    value_width = box.width - box.value_x

    assert row.lines == [fits_when_shrunk]
    assert INFO_MIN_VALUE_FONT_SIZE <= row.font_size < 9.0
    assert measurer.width(row.lines[0], FONT_REGULAR, row.font_size) <= value_width

    truncated = layout_info_box([('Waiver ID:', 'PAS-' + 'W' * 80)], measurer=measurer, max_width=INFO_MIN_WIDTH)
    assert truncated.rows[0].font_size == INFO_MIN_VALUE_FONT_SIZE
    assert truncated.rows[0].lines[0].endswith('...')


def test_info_box_wraps_long_dates(measurer):
    box = layout_info_box(
        [
            ('Waiver ID:', 'PAS-1'),
            ('Created:', 'Wednesday the first of May in the year 2024'),
            ('Expires:', '1 May 2025'),
        ],
        measurer=measurer,
        max_width=INFO_MIN_WIDTH,
    )
    created = box.rows[1]

    assert len(created.lines) >= 2
    assert box.height > layout_info_box(
        [('Waiver ID:', 'PAS-1'), ('Created:', '1 May 2024'), ('Expires:', '1 May 2025')],
        measurer=measurer,
        max_width=INFO_MIN_WIDTH,
    ).height


def test_names_outside_latin1_render(passenger_template, submission, settings):
    if not resolve_fonts(settings).unicode:
        pytest.skip('no Unicode TrueType font installed')
    named = submission.model_copy(
        update={
            'passenger': Passenger(first_name='Łukasz', last_name='李雷', town='Zürich'),
            'signatures': Signatures(witness=WitnessSignature(name='Zoë Ørsted')),
        }
    )
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, named, settings=settings, logo=None)))

    assert 'Łukasz 李雷' in text
    assert 'of the town of Zürich' in text
    assert 'Witness (Zoë Ørsted):' in text


def test_names_render_with_helvetica_when_unicode_fonts_are_off(passenger_template, submission, settings):
    plain = settings.model_copy(update={'unicode_fonts': False})
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, submission, settings=plain, logo=None)))

    assert 'I, Jane Doe of the town of Springfield,' in text


def test_signature_timestamps_default_to_host_zone(passenger_template, submission, settings, monkeypatch):
    monkeypatch.setattr(formatting.tzlocal, 'get_localzone_name', lambda: 'America/Vancouver')
    host_zoned = settings.model_copy(update={'render_timezone': None})
    text = ' '.join(_page_texts(compose_waiver_pdf(passenger_template, submission, settings=host_zoned, logo=None)))

    assert '2024-05-01 03:00:00 America/Vancouver' in text
    assert '2024-05-01 03:05:00 America/Vancouver' in text


def test_unreachable_logo_is_skipped(passenger_template, submission, settings, monkeypatch, tmp_path, caplog):
    def _refuse(url, **kwargs):
        raise httpx.ConnectError('connection refused', request=httpx.Request('GET', url))

    monkeypatch.setattr(assets.httpx, 'get', _refuse)
    broken = settings.model_copy(
        update={'logo_url': 'http://127.0.0.1:9/logo.png', 'logo_path': tmp_path / 'missing-logo.png'}
    )
    unsigned = submission.model_copy(update={'signatures': Signatures()})

    with caplog.at_level(logging.WARNING):
        result = compose_waiver(passenger_template, unsigned, settings=broken)

    assert result.page_count >= 1
    assert result.placements_of('header')
    assert 'Failed to fetch image' in caplog.text
    doc = fitz.open(stream=result.pdf_bytes, filetype='pdf')
    try:
        assert doc[0].get_images(full=True) == []
        assert 'Cycling Without Age Society' in doc[0].get_text()
    finally:
        doc.close()
