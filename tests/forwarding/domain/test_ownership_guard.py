"""Tests for owner reference normalization and ownership checks."""

import pytest
from forwarding.ownership import (
    PopulatedOwner,
    assert_owner,
    assert_owns_all,
    normalize_owner,
    owner_of,
)
from forwarding.package.package import Package
from forwarding.shared.measurements import Dimensions, Money, Weight
from protean.exceptions import InvalidOperationError


def _package(owner):
    return Package(
        owner_id=owner,
        tracking_number="1Z-001",
        retailer="Amazon",
        description="Book",
        weight=Weight(value=1),
        dimensions=Dimensions(length=1, width=1, height=1),
        estimated_value=Money(amount=10),
    )


class TestNormalizeOwner:
    def test_raw_id(self):
        assert normalize_owner("user-u") == "user-u"

    def test_populated_owner_model(self):
        owner = PopulatedOwner(id="user-u", name="U", email="u@example.com", suite_number="MA-1001")
        assert normalize_owner(owner) == "user-u"

    def test_populated_mapping_with_id(self):
        assert normalize_owner({"id": "user-u", "name": "U"}) == "user-u"

    def test_populated_mapping_with_underscore_id(self):
        assert normalize_owner({"_id": "user-u", "suite_number": "MA-1001"}) == "user-u"

    def test_mapping_without_id_rejected(self):
        with pytest.raises(ValueError):
            normalize_owner({"name": "nobody"})

    def test_unrecognised_reference_rejected(self):
        with pytest.raises(ValueError):
            normalize_owner(42)


class TestOwnerOf:
    def test_reads_aggregate_owner(self):
        assert owner_of(_package("user-u")) == "user-u"

    def test_reads_populated_owner_in_document(self):
        assert owner_of({"id": "p-1", "owner": {"_id": "user-u"}}) == "user-u"

    def test_document_without_owner_rejected(self):
        with pytest.raises(ValueError):
            owner_of({"id": "p-1"})


class TestAssertOwner:
    def test_owner_passes(self):
        assert_owner(_package("user-u"), "user-u")

    def test_populated_and_raw_references_compare_equal(self):
        assert_owner({"id": "p-1", "owner_id": PopulatedOwner(id="user-u")}, "user-u")

    def test_other_actor_is_denied(self):
        with pytest.raises(InvalidOperationError) as exc:
            assert_owner(_package("user-u"), "user-v")
        assert "Access denied" in exc.value.messages["owner"][0]

    def test_all_or_nothing_names_every_denied_entity(self):
        mine = _package("user-u")
        theirs_1 = _package("user-v")
        theirs_2 = _package("user-w")

        with pytest.raises(InvalidOperationError) as exc:
            assert_owns_all([mine, theirs_1, theirs_2], "user-u")

        denied = exc.value.messages["owner"]
        assert len(denied) == 2
        assert any(str(theirs_1.id) in message for message in denied)
        assert any(str(theirs_2.id) in message for message in denied)

    def test_all_owned_passes(self):
        assert_owns_all([_package("user-u"), _package("user-u")], "user-u")
