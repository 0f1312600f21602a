"""Package domain events — facts about warehouse intake and admin edits.

Consumed by Notifications (customer messages). Streamed on
``forwarding::package``.
"""

from protean.fields import DateTime, Identifier, Integer, String

from forwarding.domain import forwarding


@forwarding.event(part_of="Package")
class PackageReceived:
    """A parcel arrived at the warehouse for a customer's suite."""

    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    retailer = String(required=True)
    received_at = DateTime(required=True)


@forwarding.event(part_of="Package")
class PackagePhotosUploaded:
    """Warehouse staff attached photos to a package."""

    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    photo_count = Integer(required=True)
    uploaded_at = DateTime(required=True)


@forwarding.event(part_of="Package")
class StorageWarningIssued:
    """A package has sat in storage past the warning threshold."""

    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    storage_days = Integer(required=True)
    issued_at = DateTime(required=True)


@forwarding.event(part_of="Package")
class PackageStatusOverridden:
    """An admin forced a package status outside the normal workflow."""

    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    overridden_at = DateTime(required=True)


@forwarding.event(part_of="Package")
class PackageReconciled:
    """A package forced into consolidated was linked to a consolidation.

    ``outcome`` is ``linked`` (an active consolidation already listed it),
    ``appended`` (added to the owner's pending consolidation) or ``created``
    (a new processing consolidation was opened for it).
    """

    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    consolidation_id = Identifier(required=True)
    outcome = String(required=True)
    reconciled_at = DateTime(required=True)
