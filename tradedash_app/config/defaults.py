"""Default configuration parameters for the price and trade engine."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FeedParams:
    """REST polling and tick stream parameters."""
    api_base_url: str = "http://localhost:3000/api"
    stream_url_template: str = "wss://stream.binance.com:9443/ws/{symbol}@trade"
    crypto_poll_interval: float = 1.0                # Push-fallback REST cadence
    basket_poll_interval: float = 4.0                # Non-push basket cadence (3-5s)
    request_timeout: float = 8.0
    stream_grace_seconds: float = 5.0                # Wait for first tick after switch
    stream_live_seconds: float = 10.0                # Tick age still counted as live
    stream_reconnect_delay: float = 3.0
    watchlist: tuple[str, ...] = ()                  # Empty means every push-capable asset


@dataclass(frozen=True)
class PriceRange:
    """Sanity bounds for a single price, inclusive."""
    min_price: float
    max_price: float

    def contains(self, price: float) -> bool:
        return self.min_price <= price <= self.max_price


@dataclass(frozen=True)
class ValidationRanges:
    """Per-category sanity ranges."""
    crypto: PriceRange = PriceRange(0.0001, 1_000_000.0)
    forex: PriceRange = PriceRange(0.0001, 1_000.0)
    commodity: PriceRange = PriceRange(0.01, 100_000.0)
    equity: PriceRange = PriceRange(0.01, 100_000.0)

    def for_category(self, category: str) -> PriceRange:
        return getattr(self, category)


@dataclass(frozen=True)
class StalenessParams:
    """Staleness evaluation parameters."""
    check_interval: float = 5.0
    delayed_after_seconds: float = 30.0              # Warning only
    expired_after_seconds: float = 120.0             # New trades blocked


@dataclass(frozen=True)
class MovementParams:
    """Quote-to-quote movement alert thresholds (percent)."""
    tier1_pct: float = 5.0                           # Toast
    tier2_pct: float = 10.0                          # Queued alert
    max_alerts: int = 10


@dataclass(frozen=True)
class TradingParams:
    """Trade request bounds and settlement behaviour."""
    min_stake: float = 10.0
    max_stake: float = 10_000.0
    allowed_durations: tuple[int, ...] = (
        5, 10, 15, 30, 60, 300, 900, 1800, 3600, 14400, 86400, 172800,
    )
    stochastic_win_probability: float = 0.55
    countdown_tick_seconds: float = 1.0
    history_size: int = 20


@dataclass(frozen=True)
class AccountParams:
    """Balance seeding for accounts with no stored row."""
    account_id: str = "local"
    default_mode: str = "practice"
    initial_practice_balance: float = 10_000.0
    initial_live_balance: float = 0.0


@dataclass(frozen=True)
class NotificationParams:
    """Toast lifetime and persisted alert behaviour."""
    toast_seconds: float = 6.0                       # Auto-expiry window (5-8s)
    max_toasts: int = 20


@dataclass(frozen=True)
class AppConfig:
    """Complete engine configuration."""
    feed: FeedParams = field(default_factory=FeedParams)
    validation: ValidationRanges = field(default_factory=ValidationRanges)
    staleness: StalenessParams = field(default_factory=StalenessParams)
    movement: MovementParams = field(default_factory=MovementParams)
    trading: TradingParams = field(default_factory=TradingParams)
    accounts: AccountParams = field(default_factory=AccountParams)
    notifications: NotificationParams = field(default_factory=NotificationParams)


def get_default_config() -> AppConfig:
    """Get the default configuration instance."""
    return AppConfig()
