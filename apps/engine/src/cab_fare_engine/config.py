"""Engine configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FARE_", env_file=".env", extra="ignore"
    )

    # Pricing Service
    pricing_base_url: str = "https://vizagup.com"
    # Tried in order after the primary base URL fails
    pricing_fallback_urls: list[str] = []
    local_endpoint: str = "/api/direct-local-fares.php"
    outstation_endpoint: str = "/api/direct-outstation-fares.php"
    airport_endpoint: str = "/api/direct-airport-fares.php"
    tour_endpoint: str = "/api/direct-tour-fares.php"
    http_timeout: int = 30
    http_max_retries: int = 2

    # Durable storage tier
    redis_url: str = "redis://localhost:6379/0"
    redis_namespace: str = "cab_fare:"
    durable_retention: float = 86400  # 1 day; freshness is judged by cache_ttl

    # Cache lifetimes (seconds)
    cache_ttl: float = 900  # 15 min
    short_tier_ttl: float = 1800  # session tier keeps entries 30 min
    force_refresh_window: float = 5.0
    clear_cooldown: float = 30.0

    # Request coordination (seconds)
    request_throttle: float = 3.0
    event_throttle: float = 3.0
    bulk_fetch_delay: float = 0.1

    # Reconciliation (rupees)
    reconcile_tolerance: float = 50.0
    sync_tolerance: float = 10.0

    # Vehicle identity
    known_vehicle_ids: list[str] = [
        "sedan",
        "ertiga",
        "innova_crysta",
        "innova_hycross",
        "tempo_traveller",
        "luxury",
        "etios",
        "dzire_cng",
        "urbania",
    ]
    # Legacy numeric ids issued by the old admin backend
    vehicle_aliases: dict[str, str] = {
        "1": "sedan",
        "2": "ertiga",
        "100": "sedan",
        "101": "sedan",
        "102": "sedan",
        "103": "sedan",
        "180": "etios",
        "200": "ertiga",
        "201": "ertiga",
        "592": "urbania",
        "1266": "innova_crysta",
        "1290": "sedan",
        "1291": "etios",
        "1292": "sedan",
        "1293": "urbania",
    }


settings = EngineSettings()
