"""
Accessor configuration.

Values come from the environment, optionally seeded from ~/.aletheia/.env.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .sigil.address import DEFAULT_ACCOUNT_PREFIX
from .sigil.keyring import ALETHEIA_ENV

DEFAULT_CORE_IP = "127.0.0.1"
DEFAULT_RPC_PORT = "26657"
DEFAULT_API_PORT = "1317"
DEFAULT_CHAIN_ID = "private"
DEFAULT_BOND_DENOM = "utia"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class AccessorConfig:
    core_ip: str = DEFAULT_CORE_IP
    rpc_port: str = DEFAULT_RPC_PORT
    api_port: str = DEFAULT_API_PORT
    chain_id: str = DEFAULT_CHAIN_ID
    bond_denom: str = DEFAULT_BOND_DENOM
    account_prefix: str = DEFAULT_ACCOUNT_PREFIX
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "AccessorConfig":
        """Build a config from ALETHEIA_* variables, loading ``env_path`` first if present."""
        env_path = env_path or ALETHEIA_ENV
        if env_path.exists():
            load_dotenv(env_path, override=False)

        timeout = os.environ.get("ALETHEIA_TIMEOUT", str(DEFAULT_TIMEOUT))
        try:
            timeout_s = float(timeout)
        except ValueError as exc:
            raise ValueError(f"ALETHEIA_TIMEOUT must be a number of seconds, got {timeout!r}") from exc

        return cls(
            core_ip=os.environ.get("ALETHEIA_CORE_IP", DEFAULT_CORE_IP),
            rpc_port=os.environ.get("ALETHEIA_RPC_PORT", DEFAULT_RPC_PORT),
            api_port=os.environ.get("ALETHEIA_API_PORT", DEFAULT_API_PORT),
            chain_id=os.environ.get("ALETHEIA_CHAIN_ID", DEFAULT_CHAIN_ID),
            bond_denom=os.environ.get("ALETHEIA_BOND_DENOM", DEFAULT_BOND_DENOM),
            account_prefix=os.environ.get("ALETHEIA_ACCOUNT_PREFIX", DEFAULT_ACCOUNT_PREFIX),
            timeout=timeout_s,
        )
