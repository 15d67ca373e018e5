import json
import re
from typing import Union

from schemas.events import DecodedPayload

# Some frames carry a shop id glued in front of the JSON: 001640619651{...}
_PREFIXED_FRAME = re.compile(r"^(\d+)(\{.*\})\s*$", re.DOTALL)


def decode(raw: Union[bytes, str]) -> DecodedPayload:
    """Split off an optional digit prefix and parse the rest as JSON.

    Never raises: text that is not JSON comes back as the body string with
    ``error`` set, so the caller can still surface it.
    """
    if isinstance(raw, (bytes, bytearray)):
        text = bytes(raw).decode("utf-8", errors="replace")
    else:
        text = raw

    prefix_id = None
    json_text = text
    match = _PREFIXED_FRAME.match(text)
    if match:
        prefix_id, json_text = match.groups()

    try:
        body = json.loads(json_text)
    except ValueError as exc:
        return DecodedPayload(prefix_id=prefix_id, body=json_text, error=str(exc))

    return DecodedPayload(prefix_id=prefix_id, body=body)
