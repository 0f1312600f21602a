"""Photo request domain events — streamed on ``forwarding::photo_request``."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from forwarding.domain import forwarding


@forwarding.event(part_of="PhotoRequest")
class PhotoRequestCreated:
    """A customer paid for extra photos or an inspection report of a package."""

    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    package_id = Identifier(required=True)
    package_description = String(required=True)
    request_type = String(required=True)
    total_cost = Float(required=True)
    currency = String(required=True)
    requested_at = DateTime(required=True)


@forwarding.event(part_of="PhotoRequest")
class PhotoRequestProcessingStarted:
    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    started_at = DateTime(required=True)


@forwarding.event(part_of="PhotoRequest")
class PhotoRequestCompleted:
    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    package_id = Identifier(required=True)
    photo_count = Integer(required=True)
    completed_at = DateTime(required=True)


@forwarding.event(part_of="PhotoRequest")
class PhotoRequestCancelled:
    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)
