from __future__ import annotations

import base64

_OBJECT_NAME_TRANSLATION = str.maketrans({"+": "-", "/": "_", "=": "."})


def encode_key(key: str) -> str:
    """Map a cache key to an object name made of ``[A-Za-z0-9_.-]`` only.

    Base64 over the UTF-8 bytes keeps the mapping injective; ``=`` padding is
    swapped for ``.`` because some path-style gateways reject it.
    """
    if not isinstance(key, str):
        raise TypeError(f"cache key must be str, not {type(key).__name__}")
    encoded = base64.b64encode(key.encode("utf-8")).decode("ascii")
    return encoded.translate(_OBJECT_NAME_TRANSLATION)
