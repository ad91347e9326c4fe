"""Customer domain exceptions.

Raised while validating checkout contact details.  The API layer
(Views) catches these and translates them into 400 responses.
"""

from __future__ import annotations


class GuestInfoInvalid(Exception):
    """The buyer's name or email failed validation.

    The message is customer-facing and returned verbatim.
    """
