"""
Coordinator-facing enums and constants.
"""

from enum import IntEnum


class OrderStatus(IntEnum):
    """Trade lifecycle codes as reported by coordinators."""
    WAITING_FOR_MAKER_BOND = 0
    PUBLIC = 1
    PAUSED = 2
    WAITING_FOR_TAKER_BOND = 3
    CANCELLED = 4
    EXPIRED = 5
    WAITING_FOR_TRADE_COLLATERAL_AND_BUYER_INVOICE = 6
    WAITING_ONLY_FOR_BUYER_INVOICE = 7
    WAITING_ONLY_FOR_SELLER_TRADE_COLLATERAL = 8
    SENDING_FIAT_IN_CHATROOM = 9
    FIAT_SENT_IN_CHATROOM = 10
    IN_DISPUTE = 11
    COLLABORATIVELY_CANCELLED = 12
    SENDING_SATOSHIS_TO_BUYER = 13
    SUCCESSFUL_TRADE = 14
    FAILED_LIGHTNING_PAYMENT = 15
    WAITING_FOR_DISPUTE_RESOLUTION = 16
    MAKER_LOST_DISPUTE = 17
    TAKER_LOST_DISPUTE = 18


class OrderType(IntEnum):
    BUY = 0
    SELL = 1


# Coordinators omit the status on some failure responses; the expiry is only
# visible in the bad_request message.
EXPIRED_MARKER = "expired"

ROBOT_PATH = "/api/robot/"
ORDER_PATH = "/api/order/"
MAKE_PATH = "/api/make/"
