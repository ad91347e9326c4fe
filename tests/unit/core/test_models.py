"""Unit tests for BaseModel, exercised through a concrete catalog model."""

from __future__ import annotations

import uuid

import pytest
from freezegun import freeze_time

from modules.catalog.models import Product

pytestmark = pytest.mark.unit


class TestBaseModel:
    """Tests for UUIDv7 PK and timestamp behaviour."""

    def test_id_is_uuid_version_7(self):
        obj = Product.objects.create(name="A", slug="a")
        assert isinstance(obj.id, uuid.UUID)
        assert obj.id.version == 7

    def test_ids_are_time_ordered(self):
        """UUIDv7 encodes timestamp, so sequential creates yield ordered IDs."""
        with freeze_time("2026-01-01 10:00:00") as frozen:
            a = Product.objects.create(name="first", slug="first")
            frozen.tick(1)
            b = Product.objects.create(name="second", slug="second")
        assert str(a.id) < str(b.id)

    def test_created_at_does_not_change_on_save(self):
        with freeze_time("2026-01-01 10:00:00") as frozen:
            obj = Product.objects.create(name="original", slug="original")
            original_created = obj.created_at
            frozen.tick(60)
            obj.name = "modified"
            obj.save()
        obj.refresh_from_db()
        assert obj.created_at == original_created
        assert obj.updated_at > original_created

    def test_save_with_update_fields_includes_updated_at(self):
        """The save() guard must inject updated_at into update_fields."""
        with freeze_time("2026-01-01 10:00:00") as frozen:
            obj = Product.objects.create(name="original", slug="guarded")
            original_updated = obj.updated_at
            frozen.tick(60)
            obj.name = "modified"
            obj.save(update_fields=["name"])
        obj.refresh_from_db()
        assert obj.name == "modified"
        assert obj.updated_at > original_updated

    def test_id_is_not_editable(self):
        assert Product._meta.get_field("id").editable is False
