from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_bytes(value: Any) -> bytes:
    try:
        text = json.dumps(
            value,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"non-canonical payload: {exc}") from exc
    return text.encode("utf-8")


def digest_ref_for_value(value: Any) -> str:
    digest_bytes = hashlib.sha256(canonical_bytes(value)).digest()
    return f"sha256:{digest_bytes.hex()}"

