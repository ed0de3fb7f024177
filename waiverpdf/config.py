from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
        populate_by_name=True,
    )

    app_name: str = 'Waiver PDF Engine'

    data_dir: Path = Field(default=Path('./data'))
    log_level: str = 'INFO'

    # Organization identity printed on every waiver
    organization_name: str = 'Cycling Without Age Society'
    organization_short_name: str = 'CWAS'
    logo_path: Path | None = None
    logo_url: str | None = None
    asset_timeout_seconds: float = 10.0

    # TrueType files for names outside Latin-1; unset paths fall back to system fonts
    unicode_fonts: bool = True
    font_path: Path | None = None
    font_bold_path: Path | None = None
    font_italic_path: Path | None = None
    cjk_font_path: Path | None = None

    # Signature timestamps are printed in this zone; unset means the host's local zone
    render_timezone: str | None = Field(
        default=None,
        validation_alias=AliasChoices('RENDER_TIMEZONE', 'WAIVER_TIMEZONE', 'TZ'),
    )
    waiver_validity_years: int = 1

    # PDF metadata
    pdf_subject: str = 'Passenger Waiver and Agreement'
    pdf_keywords: str = 'waiver, passenger, consent, cycling without age'
    # Strip creation dates and document IDs so identical inputs give identical bytes
    pdf_invariant: bool = False

    # Waiver IDs
    waiver_id_prefix: str = 'PAS-'
    waiver_id_length: int = 10
    waiver_id_max_attempts: int = 5

    # Paper upload
    max_upload_bytes: int = 10 * 1024 * 1024

    def output_dir(self) -> Path:
        return self.data_dir / 'waivers'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.output_dir().mkdir(parents=True, exist_ok=True)
    return settings
