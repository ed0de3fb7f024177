from __future__ import annotations

import base64
import io
from datetime import datetime, timezone

import pytest
from PIL import Image, ImageDraw
from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas

from waiverpdf.config import Settings, get_settings
from waiverpdf.templates.defaults import build_default_template
from waiverpdf.types import (
    ContactInfo,
    Passenger,
    PersonName,
    SignatureCapture,
    Signatures,
    WaiverSubmission,
    WaiverType,
    WitnessSignature,
)


class FixedAdvanceMeasurer:
    """Every glyph is ``advance * font_size`` wide, whatever the font."""

    def __init__(self, advance: float = 0.5):
        self.advance = advance

    def width(self, text: str, font_name: str, font_size: float) -> float:
        return len(text) * font_size * self.advance


@pytest.fixture
def measurer() -> FixedAdvanceMeasurer:
    return FixedAdvanceMeasurer()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path / 'data',
        render_timezone='UTC',
        organization_name='Cycling Without Age Society',
        organization_short_name='CWAS',
        pdf_invariant=True,
    )


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv('DATA_DIR', str(tmp_path / 'cli-data'))
    monkeypatch.setenv('RENDER_TIMEZONE', 'UTC')
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _png_bytes(size: tuple[int, int] = (240, 80)) -> bytes:
    image = Image.new('RGBA', size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(image)
    width, height = size
    draw.line([(10, height - 20), (width // 3, 15), (width // 2, height - 25), (width - 10, 20)], fill=(0, 0, 0, 255), width=4)
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def signature_png() -> bytes:
    return _png_bytes()


@pytest.fixture
def signature_data_url(signature_png) -> str:
    return 'data:image/png;base64,' + base64.b64encode(signature_png).decode('ascii')


@pytest.fixture
def passenger_template():
    return build_default_template(WaiverType.passenger, version='2.1', effective_date='2025-03-05')


@pytest.fixture
def representative_template():
    return build_default_template(WaiverType.representative, version='2.1', effective_date='2025-03-05')


@pytest.fixture
def submission(signature_data_url) -> WaiverSubmission:
    return WaiverSubmission(
        waiver_id='PAS-7K3M9Q2XJD',
        waiver_type=WaiverType.passenger,
        passenger=Passenger(first_name='Jane', last_name='Doe', town='Springfield'),
        contact=ContactInfo(email='jane.doe@example.org', phone='555-0100'),
        agreements={'waiver': True, 'handbook': True},
        media_release='fullConsent',
        signatures=Signatures(
            passenger=SignatureCapture(image=signature_data_url, timestamp=1714557600000),
            witness=WitnessSignature(name='John Smith', image=signature_data_url, timestamp='2024-05-01T10:05:00Z'),
        ),
        created_at=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def representative_submission(submission) -> WaiverSubmission:
    return submission.model_copy(
        update={
            'waiver_type': WaiverType.representative,
            'representative': PersonName(first_name='Mary', last_name='Doe'),
        }
    )


def build_source_pdf(pages: int = 2, pagesize=LETTER) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=pagesize)
    width, height = pagesize
    for number in range(1, pages + 1):
        pdf.setFont('Helvetica', 12)
        pdf.drawString(72, height - 144, f'Paper waiver page {number}')
        pdf.drawString(72, height - 170, 'Signature: ______________________')
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture
def source_pdf() -> bytes:
    return build_source_pdf()


@pytest.fixture
def source_pdf_factory():
    return build_source_pdf
