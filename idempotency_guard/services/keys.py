"""
Idempotency Key Derivation

Keys are fingerprints for deduplication, not a security boundary. MD5 over a
canonical JSON rendering keeps them short and stable across processes.
"""

from typing import Any, Callable, Dict, Optional
import hashlib
import json

from idempotency_guard.services.errors import InvalidIdempotencyKeyError

HashCalculator = Callable[[Any], str]


def md5_fingerprint(text: str) -> str:
    """Hex MD5 digest of a string."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def canonical_json(payload: Any) -> str:
    """
    Render a payload as JSON that does not depend on dict insertion order.

    Values json cannot encode natively (datetimes, decimals, UUIDs) fall back
    to str().
    """
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def default_fingerprint(use_case: str, payload: Any) -> str:
    """MD5 over the use case and its input, so equal inputs of different use cases differ."""
    return md5_fingerprint(canonical_json([use_case, payload]))


def derive_key(use_case: str, payload: Any, hash_calculator: Optional[HashCalculator] = None) -> str:
    """
    Derive the idempotency key for a use case input.

    The default key hashes the use case together with the input. A custom
    calculator sees only the input; records are still identified by the
    (use_case, key) pair, so its keys never collide across use cases in the
    store either.

    Args:
        use_case: Logical operation name
        payload: Use case input
        hash_calculator: Optional replacement for the default fingerprint

    Returns:
        Key string

    Raises:
        InvalidIdempotencyKeyError: calculator returned an empty or non-string key
    """
    if hash_calculator is None:
        key = default_fingerprint(use_case, payload)
    else:
        key = hash_calculator(payload)

    if not isinstance(key, str) or not key:
        raise InvalidIdempotencyKeyError(use_case, key)

    return key


class KeyDeriver:
    """
    Key derivation with optional per use case calculators.

    A custom calculator typically hashes only the fields that make two
    requests the same logical operation, e.g. dropping a request timestamp:

        KeyDeriver(custom={
            "create-user": lambda p: md5_fingerprint(canonical_json(
                {"name": p["name"], "age": p["age"]}
            )),
        })

    Every calculator MUST be pure and deterministic: the same logical input
    has to produce the same key in every process and at every point in time.
    A calculator that reads clocks, random state or process-local data lets
    duplicates through without any error being raised.
    """

    def __init__(
        self,
        default: Optional[HashCalculator] = None,
        custom: Optional[Dict[str, HashCalculator]] = None,
    ):
        self.default = default
        self.custom = dict(custom or {})

    def register(self, use_case: str, hash_calculator: HashCalculator) -> None:
        """Use a custom calculator for one use case."""
        self.custom[use_case] = hash_calculator

    def derive(self, use_case: str, payload: Any) -> str:
        return derive_key(use_case, payload, self.custom.get(use_case, self.default))
