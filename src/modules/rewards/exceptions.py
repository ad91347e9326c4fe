"""Rewards domain exceptions."""

from __future__ import annotations


class InvalidRedemption(Exception):
    """A points redemption request broke a redemption rule."""
