# pusnip/core/config.py

import logging
import os
import shlex
import sys
from dataclasses import dataclass, field
from typing import List, Optional

# Setup logging to output to stdout, as is standard for Docker.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)


@dataclass(frozen=True)
class Config:
    """
    Centralized configuration from environment variables.
    Built once at startup and handed to every component that needs it.
    """
    api_key: Optional[str] = None
    nftables_conf: str = "nftables.conf"
    state_file: str = "state.json"
    mapping_file: str = "mapping.json"
    lock_dir: str = "."
    nft_command: List[str] = field(default_factory=lambda: ["sudo", "nft"])
    host: str = "0.0.0.0"
    port: int = 80

    @classmethod
    def from_env(cls) -> "Config":
        """Factory method to create a configuration from environment variables."""
        api_key = os.environ.get("API_KEY", "").strip() or None

        try:
            port = int(os.environ.get("PORT", "80"))
        except (ValueError, TypeError):
            logging.warning("PORT is invalid or not set. Using default port 80.")
            port = 80

        nft_command = shlex.split(os.environ.get("NFT_COMMAND", "sudo nft"))
        if not nft_command:
            logging.warning("NFT_COMMAND is empty. Using default 'sudo nft'.")
            nft_command = ["sudo", "nft"]

        config = cls(
            api_key=api_key,
            nftables_conf=os.environ.get("NFTABLES_CONF", "nftables.conf"),
            state_file=os.environ.get("STATE_JSON", "state.json"),
            mapping_file=os.environ.get("MAPPING_JSON", "mapping.json"),
            lock_dir=os.environ.get("LOCK_DIR", "."),
            nft_command=nft_command,
            host=os.environ.get("PUSNIP_HOST", "0.0.0.0"),
            port=port,
        )
        config.log_summary()
        return config

    def log_summary(self):
        logging.info(f"NFTABLES_CONF \t{self.nftables_conf}")
        logging.info(f"STATE_JSON \t{self.state_file}")
        logging.info(f"MAPPING_JSON \t{self.mapping_file}")
        logging.info(f"API_KEY \t{'ENABLED' if self.api_key else 'DISABLED'}")
        logging.info(f"PORT \t\t{self.port}")
