from __future__ import annotations

import secrets
import string
from typing import Callable, Container, TypeVar

from config import config
from errors import CodeGenerationExhausted, DuplicateShortCode

ALPHABET = string.ascii_letters + string.digits

T = TypeVar("T")


def generate_short_code(length: int = config.SHORT_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def generate_unique_code(
    taken: Container[str],
    claim: Callable[[str], T] = lambda code: code,
    attempts: int = config.SHORT_CODE_ATTEMPTS,
) -> T:
    """
    Draw codes until one is free, giving up after ``attempts`` draws.

    A draw is spent whether the code is already in ``taken`` or ``claim``
    rejects it with DuplicateShortCode. Returns whatever ``claim`` returns.
    """
    for _ in range(attempts):
        code = generate_short_code()
        if code in taken:
            continue
        try:
            return claim(code)
        except DuplicateShortCode:
            continue
    raise CodeGenerationExhausted(
        f"Failed to generate unique short code after {attempts} attempts"
    )
