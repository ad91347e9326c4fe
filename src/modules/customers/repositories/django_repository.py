"""Django ORM implementation of the address repository."""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.customers.models import Address
from modules.customers.repositories.interfaces import IAddressRepository

logger = structlog.get_logger(__name__)

ADDRESS_FIELDS = (
    "name",
    "street",
    "apartment",
    "city",
    "state",
    "zip_code",
    "country",
    "phone",
)


class AddressDjangoRepository(IAddressRepository):
    """Concrete address repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Address]:
        try:
            return Address.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def save(self, entity: Address) -> Address:
        entity.save()
        return entity

    def find_or_create(self, user_id: Optional[int], data: Dict[str, Any]) -> Address:
        values = {field: data.get(field) or "" for field in ADDRESS_FIELDS}
        values["country"] = values["country"] or "US"

        match = {
            "street": values["street"],
            "city": values["city"],
            "zip_code": values["zip_code"],
        }
        if user_id is None:
            # Guest rows are shared only between checkouts for the same name.
            match.update(user__isnull=True, name=values["name"])
        else:
            match["user_id"] = user_id

        existing = Address.objects.filter(**match).order_by("created_at").first()
        if existing:
            logger.info(
                "address.reused",
                address_id=str(existing.id),
                user_id=user_id,
            )
            return existing

        address = Address.objects.create(user_id=user_id, **values)
        logger.info(
            "address.created",
            address_id=str(address.id),
            user_id=user_id,
        )
        return address
