"""
Surrogate identifier codec.

Reversibly maps non-negative integers to short opaque strings so raw
sequential keys never leave the service. Token generation is delegated to
:class:`hashids.Hashids` (salt, alphabet and minimum length); this module
adds the request-facing policy on top of it:

* only single-id tokens inside the ``[min_length, max_length]`` window
  decode, anything else is reported as not found,
* :meth:`SurrogateIdCodec.looks_like_encoded` tells identifier tokens
  apart from raw numeric ids before any decode is attempted,
* both directions are memoized; the memos are shared between threads and
  guarded by a lock.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Any, NamedTuple

from hashids import Hashids

from .exceptions import CodecConfigurationError, CodecError
from .settings import DEFAULT_ALPHABET, CriteriaSettings

logger = logging.getLogger("cqrs_ddd.criteria.codec")

_MIN_ALPHABET = 16
_NUMERIC = re.compile(r"^[+-]?\d+(\.\d+)?$")


class DecodeResult(NamedTuple):
    """Outcome of :meth:`SurrogateIdCodec.decode`."""

    value: int | None
    ok: bool


_NOT_FOUND = DecodeResult(None, False)


class SurrogateIdCodec:
    """Encode/decode integer ids to opaque tokens with memoization."""

    def __init__(
        self,
        alphabet: str = DEFAULT_ALPHABET,
        *,
        salt: str = "",
        min_length: int = 4,
        max_length: int = 20,
    ) -> None:
        unique = "".join(dict.fromkeys(alphabet))
        if len(unique) < _MIN_ALPHABET:
            raise CodecConfigurationError(
                f"Alphabet must contain at least {_MIN_ALPHABET} unique characters"
            )
        if any(ch.isspace() for ch in unique):
            raise CodecConfigurationError("Alphabet must not contain whitespace")
        if all(ch.isdigit() for ch in unique):
            raise CodecConfigurationError(
                "Alphabet must contain at least one non-digit character"
            )
        if min_length < 1 or min_length > max_length:
            raise CodecConfigurationError(
                f"Invalid length window [{min_length}, {max_length}]"
            )

        try:
            self._hashids = Hashids(salt=salt, min_length=min_length, alphabet=unique)
        except ValueError as exc:
            raise CodecConfigurationError(str(exc)) from exc

        self._alphabet_set = frozenset(unique)
        self.min_length = min_length
        self.max_length = max_length

        self._encode_memo: dict[int, str] = {}
        self._decode_memo: dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: CriteriaSettings) -> SurrogateIdCodec:
        return cls(
            settings.id_codec_alphabet,
            salt=settings.id_codec_salt,
            min_length=settings.id_codec_min_length,
            max_length=settings.id_codec_max_length,
        )

    # -- encoding ------------------------------------------------------------

    def encode(self, value: int) -> str:
        """Return the opaque token for a non-negative integer id."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Identifier must be an int, got {type(value).__name__}")
        if value < 0:
            raise ValueError(f"Identifier must be non-negative, got {value}")

        with self._lock:
            cached = self._encode_memo.get(value)
        if cached is not None:
            return cached

        token: str = self._hashids.encode(value)
        with self._lock:
            self._encode_memo[value] = token
        return token

    # -- decoding ------------------------------------------------------------

    def decode(self, token: str) -> DecodeResult:
        """
        Decode *token* back to its integer id.

        Returns ``DecodeResult(None, False)`` when the token is not a
        canonical single-id output of this codec. Never raises for bad
        input.
        """
        if not isinstance(token, str):
            return _NOT_FOUND

        with self._lock:
            cached = self._decode_memo.get(token)
        if cached is not None:
            return DecodeResult(cached, True)

        value = self._decode(token)
        if value is None:
            logger.debug("Token %r is not a valid encoded identifier", token)
            return _NOT_FOUND

        with self._lock:
            self._decode_memo[token] = value
            self._encode_memo.setdefault(value, token)
        return DecodeResult(value, True)

    def _decode(self, token: str) -> int | None:
        if not self.min_length <= len(token) <= self.max_length:
            return None
        if not set(token) <= self._alphabet_set:
            return None
        # Hashids re-encodes before answering, so only canonical tokens decode
        numbers = self._hashids.decode(token)
        if len(numbers) != 1:
            return None
        return int(numbers[0])

    # -- heuristics ----------------------------------------------------------

    def looks_like_encoded(self, token: Any) -> bool:
        """
        Cheap syntactic check: non-numeric, within the length window and
        drawn from the alphabet. Says nothing about whether it decodes.
        """
        if not isinstance(token, str) or _NUMERIC.match(token):
            return False
        if not self.min_length <= len(token) <= self.max_length:
            return False
        return set(token) <= self._alphabet_set

    def normalize_identifier_value(self, value: Any) -> Any:
        """
        Replace encoded identifier strings by their integer id.

        Values that do not look encoded (numbers, numeric strings, short or
        foreign strings) are returned unchanged. A value that looks encoded
        but fails to decode raises :class:`CodecError`.
        """
        if isinstance(value, list | tuple):
            return type(value)(self.normalize_identifier_value(v) for v in value)
        if not self.looks_like_encoded(value):
            return value
        result = self.decode(value)
        if not result.ok:
            raise CodecError(value)
        return result.value

    def clear_cache(self) -> None:
        with self._lock:
            self._encode_memo.clear()
            self._decode_memo.clear()
