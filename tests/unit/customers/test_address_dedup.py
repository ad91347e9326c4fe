"""Unit tests for address deduplication at checkout."""

from __future__ import annotations

import pytest

from modules.customers.models import Address
from modules.customers.repositories import AddressDjangoRepository

pytestmark = pytest.mark.unit

ADDRESS = {
    "name": "Jane Doe",
    "street": "1 Main St",
    "city": "Austin",
    "state": "TX",
    "zip_code": "78701",
}


class TestFindOrCreate:
    def test_same_user_same_address_reused(self, buyer):
        repo = AddressDjangoRepository()

        first = repo.find_or_create(buyer.pk, ADDRESS)
        second = repo.find_or_create(buyer.pk, {**ADDRESS, "phone": "555-0100"})

        assert first.id == second.id
        assert Address.objects.count() == 1

    def test_different_street_creates_new(self, buyer):
        repo = AddressDjangoRepository()

        repo.find_or_create(buyer.pk, ADDRESS)
        repo.find_or_create(buyer.pk, {**ADDRESS, "street": "2 Main St"})

        assert Address.objects.filter(user=buyer).count() == 2

    def test_guest_same_address_reused(self):
        repo = AddressDjangoRepository()

        first = repo.find_or_create(None, ADDRESS)
        second = repo.find_or_create(None, ADDRESS)

        assert first.id == second.id
        assert Address.objects.filter(user__isnull=True).count() == 1

    def test_guest_with_other_name_gets_own_row(self):
        repo = AddressDjangoRepository()

        repo.find_or_create(None, ADDRESS)
        repo.find_or_create(None, {**ADDRESS, "name": "John Roe"})

        assert Address.objects.filter(user__isnull=True).count() == 2

    def test_guest_never_reuses_account_address(self, buyer):
        repo = AddressDjangoRepository()

        owned = repo.find_or_create(buyer.pk, ADDRESS)
        guest = repo.find_or_create(None, ADDRESS)

        assert guest.id != owned.id
        assert guest.user_id is None

    def test_country_defaults_to_us(self):
        address = AddressDjangoRepository().find_or_create(None, {**ADDRESS, "country": ""})
        assert address.country == "US"
