"""Catalog repositories package."""

from modules.catalog.repositories.django_repository import VariantDjangoRepository
from modules.catalog.repositories.interfaces import IVariantRepository

__all__ = ["IVariantRepository", "VariantDjangoRepository"]
