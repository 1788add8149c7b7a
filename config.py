"""
Robo Garage — Configuration
All tunable parameters in one place.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CoordinatorConfig:
    short_alias: str
    mainnet_url: str
    testnet_url: str = ""

    def url_for(self, network: str) -> str:
        if network == "testnet" and self.testnet_url:
            return self.testnet_url
        return self.mainnet_url


@dataclass
class FederationConfig:
    network: str = "mainnet"            # "mainnet" or "testnet"
    coordinators: List[CoordinatorConfig] = field(default_factory=lambda: [
        CoordinatorConfig("local", "http://127.0.0.1:8000", "http://127.0.0.1:8001"),
    ])
    selfhosted_url: Optional[str] = None  # Route every coordinator through a self-hosted client


@dataclass
class RequestConfig:
    timeout_sec: float = 30.0


@dataclass
class IdentityConfig:
    min_bits_entropy: float = 128.0
    min_shannon_entropy: float = 4.0
    avatar_sizes: List[str] = field(default_factory=lambda: ["small", "large"])
    token_length: int = 36


@dataclass
class RobotConfig:
    token: str = ""
    pub_key: str = ""
    enc_priv_key: str = ""


@dataclass
class StorageConfig:
    db_path: str = "./data/garage.db"


@dataclass
class GarageConfig:
    federation: FederationConfig = field(default_factory=FederationConfig)
    requests: RequestConfig = field(default_factory=RequestConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    robot: RobotConfig = field(default_factory=RobotConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    refresh_interval_sec: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "GarageConfig":
        """Load config with environment variable overrides."""
        config = cls()
        config.federation.network = os.getenv("GARAGE_NETWORK", "mainnet").lower()
        coordinators = os.getenv("GARAGE_COORDINATORS", "")
        if coordinators:
            config.federation.coordinators = parse_coordinators(coordinators)
        config.federation.selfhosted_url = os.getenv("GARAGE_SELFHOSTED_URL") or None
        config.requests.timeout_sec = float(os.getenv("GARAGE_REQUEST_TIMEOUT", "30"))
        config.robot.token = os.getenv("ROBOT_TOKEN", "")
        config.robot.pub_key = os.getenv("ROBOT_PUB_KEY", "")
        config.robot.enc_priv_key = os.getenv("ROBOT_ENC_PRIV_KEY", "")
        config.storage.db_path = os.getenv("DB_PATH", "./data/garage.db")
        config.refresh_interval_sec = int(os.getenv("REFRESH_INTERVAL_SEC", "10"))
        config.log_level = os.getenv("LOG_LEVEL", "INFO")
        return config


def parse_coordinators(raw: str) -> List[CoordinatorConfig]:
    """
    Parse "alias=mainnet_url|testnet_url,alias2=url" into coordinator configs.
    The testnet part is optional.
    """
    result = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if "=" not in entry:
            raise ValueError(f"Bad coordinator entry (expected alias=url): {entry!r}")
        alias, urls = entry.split("=", 1)
        mainnet, _, testnet = urls.partition("|")
        result.append(CoordinatorConfig(alias.strip(), mainnet.strip(), testnet.strip()))
    return result
