from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from functools import partial
from pathlib import Path

from pydantic import ValidationError

from waiverpdf.config import Settings, get_settings
from waiverpdf.ids import WaiverIdExhaustedError, allocate_waiver_id, generate_waiver_id
from waiverpdf.pdf.annotator import InvalidSourcePdfError, annotate_paper_waiver
from waiverpdf.pdf.compositor import compose_waiver
from waiverpdf.storage import read_json, waiver_exists, waiver_pdf_path, write_bytes_atomic, write_json_atomic
from waiverpdf.templates.defaults import build_default_template
from waiverpdf.templates.interpolation import extract_placeholders
from waiverpdf.types import OverlayMetadata, WaiverSubmission, WaiverTemplate, WaiverType


logger = logging.getLogger(__name__)


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _error(message: str) -> int:
    _print_json({'status': 'error', 'message': message})
    return 2


def _id_generator(settings: Settings):
    return partial(generate_waiver_id, prefix=settings.waiver_id_prefix, length=settings.waiver_id_length)


def _allocate(settings: Settings) -> str:
    return allocate_waiver_id(
        waiver_exists,
        attempts=settings.waiver_id_max_attempts,
        generator=_id_generator(settings),
    )


def _load_template(args: argparse.Namespace) -> WaiverTemplate:
    if args.template:
        return WaiverTemplate.model_validate(read_json(Path(args.template).expanduser()))
    return build_default_template(
        WaiverType(args.waiver_type),
        version=args.version,
        effective_date=args.effective_date,
    )


def cmd_compose(args: argparse.Namespace) -> int:
    settings = get_settings()
    submission_path = Path(args.submission).expanduser().resolve()
    if not submission_path.is_file():
        return _error(f'Submission not found: {submission_path}')

    try:
        payload = read_json(submission_path)
        if not payload.get('waiverId') and not payload.get('waiver_id'):
            payload['waiverId'] = _allocate(settings)
        submission = WaiverSubmission.model_validate(payload)
        template = _load_template(args)
    except (ValueError, ValidationError) as exc:
        return _error(f'Invalid input: {exc}')
    except WaiverIdExhaustedError as exc:
        return _error(str(exc))

    if template.waiver_type != submission.waiver_type:
        logger.warning(
            'Template is a %s waiver but submission is %s',
            template.waiver_type.value,
            submission.waiver_type.value,
        )

    result = compose_waiver(template, submission, settings=settings)
    output = Path(args.output).expanduser() if args.output else waiver_pdf_path(submission.waiver_id)
    write_bytes_atomic(output, result.pdf_bytes)

    _print_json(
        {
            'status': 'ok',
            'waiver_id': submission.waiver_id,
            'output': str(output),
            'page_count': result.page_count,
            'bytes': len(result.pdf_bytes),
        }
    )
    return 0


def cmd_annotate(args: argparse.Namespace) -> int:
    settings = get_settings()
    pdf_path = Path(args.pdf).expanduser().resolve()
    if not pdf_path.exists() or not pdf_path.is_file():
        return _error(f'PDF not found: {pdf_path}')
    file_size = int(pdf_path.stat().st_size)
    if file_size <= 0:
        return _error(f'PDF is empty: {pdf_path}')
    if file_size > int(settings.max_upload_bytes):
        return _error(
            f'PDF too large: {file_size} bytes, max allowed {int(settings.max_upload_bytes)} bytes'
        )

    try:
        waiver_id = args.waiver_id or _allocate(settings)
        metadata = OverlayMetadata(
            waiver_id=waiver_id,
            signed_date=date.fromisoformat(args.signed_date),
            uploaded_by_email=args.email,
            upload_date=date.fromisoformat(args.upload_date) if args.upload_date else date.today(),
        )
        annotated = annotate_paper_waiver(
            pdf_path.read_bytes(),
            metadata,
            validity_years=settings.waiver_validity_years,
        )
    except (InvalidSourcePdfError, WaiverIdExhaustedError) as exc:
        return _error(str(exc))
    except ValueError as exc:
        return _error(f'Invalid input: {exc}')

    output = Path(args.output).expanduser() if args.output else waiver_pdf_path(waiver_id, suffix='-paper')
    write_bytes_atomic(output, annotated)
    _print_json(
        {
            'status': 'ok',
            'waiver_id': waiver_id,
            'output': str(output),
            'bytes': len(annotated),
        }
    )
    return 0


def cmd_new_id(args: argparse.Namespace) -> int:
    settings = get_settings()
    generator = _id_generator(settings)
    _print_json({'waiver_ids': [generator() for _ in range(max(1, int(args.count)))]})
    return 0


def cmd_placeholders(args: argparse.Namespace) -> int:
    try:
        template = _load_template(args)
    except (ValueError, ValidationError) as exc:
        return _error(f'Invalid template: {exc}')

    blocks = [
        {'id': block.id, 'label': block.label, 'parameters': extract_placeholders(block.template_text)}
        for block in template.blocks
    ]
    names: list[str] = []
    for item in blocks:
        names.extend(name for name in item['parameters'] if name not in names)
    _print_json({'placeholders': names, 'blocks': blocks})
    return 0


def cmd_default_template(args: argparse.Namespace) -> int:
    template = build_default_template(
        WaiverType(args.waiver_type),
        version=args.version,
        effective_date=args.effective_date,
    )
    payload = template.model_dump(mode='json', by_alias=True)
    if args.output:
        output = Path(args.output).expanduser()
        write_json_atomic(output, payload)
        _print_json({'status': 'ok', 'output': str(output), 'block_count': len(template.blocks)})
        return 0
    _print_json(payload)
    return 0


def _add_template_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--template', required=False, help='Template JSON; defaults to the built-in template')
    parser.add_argument('--waiver-type', choices=[item.value for item in WaiverType], default='passenger')
    parser.add_argument('--version', default='1.0')
    parser.add_argument('--effective-date', default=date.today().isoformat())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Waiver PDF engine CLI')
    sub = parser.add_subparsers(dest='command', required=True)

    compose = sub.add_parser('compose', help='Render a signed waiver PDF from a template and a submission')
    compose.add_argument('--submission', required=True, help='Submission JSON')
    _add_template_arguments(compose)
    compose.add_argument('--output', required=False, help='Output PDF path')
    compose.set_defaults(func=cmd_compose)

    annotate = sub.add_parser('annotate', help='Stamp waiver metadata onto a scanned paper waiver')
    annotate.add_argument('--pdf', required=True, help='Path to the scanned PDF')
    annotate.add_argument('--email', required=True, help='Uploader e-mail')
    annotate.add_argument('--signed-date', required=True, help='Date the paper waiver was signed (YYYY-MM-DD)')
    annotate.add_argument('--upload-date', required=False, help='Upload date (YYYY-MM-DD), defaults to today')
    annotate.add_argument('--waiver-id', required=False, help='Existing waiver ID; a new one is allocated if omitted')
    annotate.add_argument('--output', required=False, help='Output PDF path')
    annotate.set_defaults(func=cmd_annotate)

    new_id = sub.add_parser('new-id', help='Generate waiver IDs')
    new_id.add_argument('--count', type=int, default=1)
    new_id.set_defaults(func=cmd_new_id)

    placeholders = sub.add_parser('placeholders', help='List the placeholders a template references')
    _add_template_arguments(placeholders)
    placeholders.set_defaults(func=cmd_placeholders)

    default_template = sub.add_parser('default-template', help='Print the built-in waiver template as JSON')
    default_template.add_argument('--waiver-type', choices=[item.value for item in WaiverType], default='passenger')
    default_template.add_argument('--version', default='1.0')
    default_template.add_argument('--effective-date', default=date.today().isoformat())
    default_template.add_argument('--output', required=False, help='Write the template JSON here')
    default_template.set_defaults(func=cmd_default_template)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
