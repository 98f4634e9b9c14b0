import dataclasses
import hashlib
import json
from collections.abc import Iterable
from typing import Any

MASKED_LABEL_LENGTH = 8


def hash_payload(value: Any) -> str:
    """
    Return a stable SHA-256 hash for the provided payload without leaking contents.

    Strings are encoded as UTF-8, bytes are used as-is, dataclass instances are
    converted with `dataclasses.asdict`, and everything else is serialized via JSON
    (falling back to repr()) before hashing.
    """

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)

    if value is None:
        normalized = b"null"
    elif isinstance(value, bytes):
        normalized = value
    elif isinstance(value, str):
        normalized = value.encode("utf-8")
    else:
        try:
            normalized = json.dumps(value, sort_keys=True, default=str).encode("utf-8")
        except (TypeError, ValueError):
            normalized = repr(value).encode("utf-8")

    return hashlib.sha256(normalized).hexdigest()


def mask_labels(labels: Iterable[str]) -> list[str]:
    """
    Replace user-entered category labels with short stable tokens.

    Labels such as "Therapy" or "Loan to Sam" can be personal; logs keep only a
    truncated hash so repeated categories still correlate across records.
    """

    return [hash_payload(label.strip().lower())[:MASKED_LABEL_LENGTH] for label in labels]
