"""Customer repositories package."""

from modules.customers.repositories.django_repository import AddressDjangoRepository
from modules.customers.repositories.interfaces import IAddressRepository

__all__ = ["AddressDjangoRepository", "IAddressRepository"]
