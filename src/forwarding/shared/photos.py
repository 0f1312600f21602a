"""Photo payloads arrive as JSON lists of ``{"url", "type"}`` objects."""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError


def photos_from_json(payload, entity_cls, required: bool = True):
    """Parse a photo list into ``entity_cls`` entities stamped with the upload time."""
    data = json.loads(payload) if isinstance(payload, str) else payload
    if not data:
        if required:
            raise ValidationError({"photos": ["At least one photo is required"]})
        return []
    now = datetime.now(UTC)
    return [entity_cls(uploaded_at=now, **photo) for photo in data]
