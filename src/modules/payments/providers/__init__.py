"""Payment provider clients."""

from modules.payments.providers.barterpay import BarterPayClient
from modules.payments.providers.green import GreenClient
from modules.payments.providers.nowpayments import NOWPaymentsClient
from modules.payments.providers.stripe_gateway import StripeGateway

__all__ = ["BarterPayClient", "GreenClient", "NOWPaymentsClient", "StripeGateway"]
