"""Transactional email for orders.

Senders raise on transport errors; callers that treat email as
best-effort catch and log.
"""
