from __future__ import annotations

import logging
import secrets
from typing import Callable


logger = logging.getLogger(__name__)

# Crockford base32 digits: no I, L, O or U, so IDs read back unambiguously.
WAIVER_ID_ALPHABET = '0123456789ABCDEFGHJKMNPQRSTVWXYZ'
WAIVER_ID_PREFIX = 'PAS-'
WAIVER_ID_LENGTH = 10
MAX_ALLOCATION_ATTEMPTS = 5


class WaiverIdExhaustedError(RuntimeError):
    """Every generated candidate collided with an existing waiver."""


def generate_waiver_id(*, prefix: str = WAIVER_ID_PREFIX, length: int = WAIVER_ID_LENGTH) -> str:
    if length <= 0:
        raise ValueError(f'waiver id length must be positive, got {length}')
    body = ''.join(secrets.choice(WAIVER_ID_ALPHABET) for _ in range(length))
    return f'{prefix}{body}'


def allocate_waiver_id(
    is_taken: Callable[[str], bool],
    *,
    attempts: int = MAX_ALLOCATION_ATTEMPTS,
    generator: Callable[[], str] = generate_waiver_id,
) -> str:
    for attempt in range(1, max(1, int(attempts)) + 1):
        candidate = generator()
        if not is_taken(candidate):
            return candidate
        logger.info('Waiver id %s already taken (attempt %d/%d)', candidate, attempt, attempts)
    raise WaiverIdExhaustedError(
        f'could not allocate a unique waiver identifier after {attempts} attempts'
    )
