"""Constants shared across the swap flow."""

from enum import Enum


class SwapsErrorKey(str, Enum):
    """Error kinds surfaced to the UI through ``OrchestrationState.error_key``."""

    QUOTES_NOT_AVAILABLE = "quotes-not-available"
    ERROR_FETCHING_QUOTES = "error-fetching-quotes"
    SWAP_FAILED = "swap-failed-error"


class Route(str, Enum):
    """Screens of the swap flow."""

    BUILD_QUOTE = "/swaps/build-quote"
    LOADING_QUOTES = "/swaps/loading-quotes"
    AWAITING_SWAP = "/swaps/awaiting-swap"
    SWAPS_ERROR = "/swaps/swaps-error"
    SWAPS_MAINTENANCE = "/swaps/maintenance"


class RouteState(str, Enum):
    """Background route state of the swap flow."""

    IDLE = "idle"
    LOADING = "loading"
    AWAITING = "awaiting"


# Transaction categories attached to submitted transactions
SWAP = "swap"
SWAP_APPROVAL = "swapApproval"

# Telemetry
TELEMETRY_CATEGORY = "swaps"
EVENT_QUOTES_REQUESTED = "Quotes Requested"
EVENT_NO_QUOTES_AVAILABLE = "No Quotes Available"
EVENT_QUOTES_RECEIVED = "Quotes Received"
EVENT_SWAP_STARTED = "Swap Started"

# Persisted gas price cache keys
GAS_PRICE_ESTIMATES_KEY = "gas-price-estimates"
GAS_PRICE_ESTIMATES_LAST_RETRIEVED_KEY = "gas-price-estimates-last-retrieved"

# Gas
MAX_GAS_LIMIT = 2500000

# Native asset descriptor used when ETH is the source token
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"
ETH_SWAPS_TOKEN_OBJECT = {
    "symbol": "ETH",
    "name": "Ether",
    "address": NATIVE_TOKEN_ADDRESS,
    "decimals": 18,
    "icon_url": "images/black-eth-logo.svg",
}
