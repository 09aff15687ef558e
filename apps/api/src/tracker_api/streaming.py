import json
from typing import Any

# Trailing sentinel the tracker clients strip from every creation frame.
END_MARKER = bytes([10, 52, 10])


def encode_frame(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8") + END_MARKER
