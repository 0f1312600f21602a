"""Verifies an actor owns an entity before mutating it.

An owner reference arrives in one of two shapes: the raw owner id, or a
populated owner (a model or mapping carrying ``id``/``_id`` plus profile
fields). ``normalize_owner`` is the only place that tells them apart.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Union

from protean.exceptions import InvalidOperationError
from pydantic import BaseModel


class PopulatedOwner(BaseModel):
    """Owner reference expanded with profile fields."""

    id: str
    name: str | None = None
    email: str | None = None
    suite_number: str | None = None


OwnerRef = Union[str, PopulatedOwner]


def normalize_owner(ref: Any) -> str:
    """Reduce any owner reference to a comparable identifier string."""
    if isinstance(ref, PopulatedOwner):
        return ref.id
    if isinstance(ref, Mapping):
        identifier = ref.get("id", ref.get("_id"))
        if identifier is None:
            raise ValueError("Populated owner reference carries no id")
        return str(identifier)
    if isinstance(ref, str):
        return ref
    identifier = getattr(ref, "id", None)
    if identifier is None:
        raise ValueError(f"Unrecognised owner reference: {ref!r}")
    return str(identifier)


def owner_of(entity: Any) -> str:
    """Return the normalized owner id of a model or document."""
    if isinstance(entity, Mapping):
        ref = entity.get("owner_id", entity.get("owner"))
    else:
        ref = getattr(entity, "owner_id", None)
        if ref is None:
            ref = getattr(entity, "owner", None)
    if ref is None:
        raise ValueError("Entity carries no owner reference")
    return normalize_owner(ref)


def _entity_label(entity: Any) -> str:
    identifier = entity.get("id") if isinstance(entity, Mapping) else getattr(entity, "id", None)
    return f"{type(entity).__name__} {identifier}"


def assert_owner(entity: Any, actor_id: str) -> None:
    """Raise ``InvalidOperationError`` unless ``actor_id`` owns ``entity``."""
    if owner_of(entity) != normalize_owner(actor_id):
        raise InvalidOperationError({"owner": [f"Access denied to {_entity_label(entity)}"]})


def assert_owns_all(entities: Iterable[Any], actor_id: str) -> None:
    """All-or-nothing ownership check over several entities.

    Every entity is inspected before raising so the error names all the
    offending entities at once.
    """
    actor = normalize_owner(actor_id)
    denied = [_entity_label(entity) for entity in entities if owner_of(entity) != actor]
    if denied:
        raise InvalidOperationError({"owner": [f"Access denied to {label}" for label in denied]})
