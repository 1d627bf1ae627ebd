from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from lisk_dex_adapter.models import EndpointSet

DEFAULT_SERVICE_URL = "https://service.lisk.com"

NETWORK_SERVICE_URLS = {
    "mainnet": DEFAULT_SERVICE_URL,
    "testnet": "https://testnet-service.lisk.com",
}


class Settings(BaseSettings):
    """Settings configuration class for the DEX adapter."""

    network: Literal["mainnet", "testnet"] = "mainnet"

    # Lisk Service Configuration
    endpoint_url: Optional[str] = None
    endpoint_fallbacks: List[str] = []
    request_timeout_ms: int = 10000

    # Wallet the adapter assembles multisig transactions for
    dex_wallet_address: Optional[str] = None

    # Chain watcher Configuration
    chain_poll_interval: float = 10.0
    blocks_page_limit: int = 100

    log_action_timings: bool = True

    @property
    def primary_url(self) -> str:
        """
        Resolve the primary Lisk Service URL.

        :return: the configured endpoint or the default for the selected network.
        """
        return self.endpoint_url or NETWORK_SERVICE_URLS[self.network]

    @property
    def endpoint_set(self) -> EndpointSet:
        """
        Assemble the endpoint set from settings.

        The public service of the selected network is tried last, unless it is
        already the primary or listed among the fallbacks.

        :return: endpoint set.
        """
        fallbacks = list(self.endpoint_fallbacks)
        network_url = NETWORK_SERVICE_URLS[self.network]
        if network_url != self.primary_url and network_url not in fallbacks:
            fallbacks.append(network_url)
        return EndpointSet(primary=self.primary_url, fallbacks=tuple(fallbacks))

    @property
    def request_timeout(self) -> float:
        return self.request_timeout_ms / 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LISK_DEX_",
        env_file_encoding="utf-8",
    )


settings = Settings()
