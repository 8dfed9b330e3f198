"""
Identity — идентификатор аккаунта/субъекта

Непрозрачный идентификатор фиксированной длины (32 байта).
Канонический вид: "0x" + 64 hex-символа в нижнем регистре.
Короткие hex-адреса дополняются нулями слева ("0x2" → "0x00…02").
"""

import re
from typing import Annotated, Final

from pydantic import BeforeValidator

IDENTITY_LENGTH_BYTES: Final[int] = 32

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}$")


def normalize_identity(value: object) -> str:
    """
    Приведение идентификатора к каноническому виду.

    Args:
        value: hex-строка с префиксом 0x или 32 сырых байта

    Returns:
        "0x" + 64 hex-символа (lowercase)

    Raises:
        ValueError: Если значение не является корректным идентификатором

    Examples:
        >>> normalize_identity("0x2")[-4:]
        '0002'
        >>> len(normalize_identity(bytes(32)))
        66
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != IDENTITY_LENGTH_BYTES:
            raise ValueError(
                f"identity must be {IDENTITY_LENGTH_BYTES} bytes, got {len(value)}"
            )
        return "0x" + bytes(value).hex()

    if not isinstance(value, str):
        raise ValueError(f"identity must be str or bytes, got {type(value).__name__}")

    if not _HEX_RE.match(value):
        raise ValueError(f"identity must be a 0x-prefixed hex string, got {value!r}")

    return "0x" + value[2:].lower().rjust(IDENTITY_LENGTH_BYTES * 2, "0")


def identity_bytes(identity: str) -> bytes:
    """Сырые 32 байта идентификатора."""
    return bytes.fromhex(normalize_identity(identity)[2:])


# Тип поля pydantic-моделей: любое допустимое представление → канонический str
Identity = Annotated[str, BeforeValidator(normalize_identity)]
