from __future__ import annotations

import logging

import httpx
import pytest

from waiverpdf.pdf import assets
from waiverpdf.pdf.assets import load_image_bytes, load_logo, open_image


UNREACHABLE_LOGO = 'http://127.0.0.1:9/logo.png'


@pytest.fixture
def refused(monkeypatch):
    calls = []

    def _refuse(url, **kwargs):
        calls.append(url)
        raise httpx.ConnectError('connection refused', request=httpx.Request('GET', url))

    monkeypatch.setattr(assets.httpx, 'get', _refuse)
    return calls


def test_data_url_decodes(signature_png, signature_data_url):
    assert load_image_bytes(signature_data_url) == signature_png


def test_bad_data_url_returns_none(caplog):
    with caplog.at_level(logging.WARNING):
        assert load_image_bytes('data:image/png;base64,abc') is None
        assert load_image_bytes('data:image/png;base64,') is None

    assert 'Could not decode image data URL' in caplog.text


def test_missing_file_returns_none(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        assert load_image_bytes(str(tmp_path / 'nowhere.png')) is None

    assert 'Image file not found' in caplog.text


def test_local_file_is_read(tmp_path, signature_png):
    path = tmp_path / 'signature.png'
    path.write_bytes(signature_png)

    assert load_image_bytes(str(path)) == signature_png


@pytest.mark.parametrize('source', [None, '', '   '])
def test_empty_source_returns_none(source):
    assert load_image_bytes(source) is None


def test_connection_error_returns_none(refused, caplog):
    with caplog.at_level(logging.WARNING):
        assert load_image_bytes(UNREACHABLE_LOGO, timeout_seconds=0.5) is None

    assert refused == [UNREACHABLE_LOGO]
    assert 'Failed to fetch image from' in caplog.text


def test_http_error_status_returns_none(monkeypatch, caplog):
    def _not_found(url, **kwargs):
        return httpx.Response(404, content=b'missing', request=httpx.Request('GET', url))

    monkeypatch.setattr(assets.httpx, 'get', _not_found)

    with caplog.at_level(logging.WARNING):
        assert load_image_bytes('https://example.org/logo.png') is None

    assert 'Failed to fetch image from https://example.org/logo.png' in caplog.text


def test_http_success_returns_body(monkeypatch, signature_png):
    def _ok(url, **kwargs):
        return httpx.Response(200, content=signature_png, request=httpx.Request('GET', url))

    monkeypatch.setattr(assets.httpx, 'get', _ok)

    assert load_image_bytes('https://example.org/logo.png') == signature_png


def test_open_image_rejects_unusable_bytes(caplog, signature_png):
    assert open_image(None) is None
    with caplog.at_level(logging.WARNING):
        assert open_image(b'not an image') is None
    assert 'Unsupported image data' in caplog.text

    assert open_image(signature_png).getSize() == (240, 80)


def test_logo_falls_back_to_file_when_url_fails(refused, settings, tmp_path, signature_png):
    logo = tmp_path / 'logo.png'
    logo.write_bytes(signature_png)

    reader = load_logo(settings.model_copy(update={'logo_url': UNREACHABLE_LOGO, 'logo_path': logo}))

    assert reader is not None
    assert refused == [UNREACHABLE_LOGO]


def test_logo_is_none_when_every_source_fails(refused, settings, tmp_path):
    broken = settings.model_copy(update={'logo_url': UNREACHABLE_LOGO, 'logo_path': tmp_path / 'missing-logo.png'})

    assert load_logo(broken) is None
