"""
Configuration module for the 1Password vault operator.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class OnePasswordConfig:
    """op CLI configuration."""

    cli_path: str = "op"
    account: str = ""
    email: str = ""  # acting principal, removed from vaults created incognito
    session_token: str = field(default="", repr=False)  # Never log the session
    command_timeout: int = 30  # seconds

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            cli_path=os.getenv("OP_CLI_PATH", "op"),
            account=os.getenv("OP_ACCOUNT", ""),
            email=os.getenv("OP_EMAIL", ""),
            session_token=os.getenv("OP_SESSION", ""),
            command_timeout=int(os.getenv("OP_COMMAND_TIMEOUT", "30")),
        )


@dataclass
class StateConfig:
    """Local state file configuration."""

    path: str = "opctl.state.json"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            path=os.getenv("OPCTL_STATE_FILE", "opctl.state.json"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class Config:
    """Main configuration object."""

    onepassword: OnePasswordConfig
    state: StateConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            onepassword=OnePasswordConfig.from_env(),
            state=StateConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            onepassword=OnePasswordConfig(),
            state=StateConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
