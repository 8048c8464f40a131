"""
Application and wallet configuration loaded from YAML files.

application.yaml::

    db_path: threadchat.db
    thread_name: channel
    history_page: 10
    delete_grace_ms: 1000
    licensed_private_channels: true
    verbose: false

wallet.yaml::

    key_pairs:
      - secret_key: <hex>
        public_key: <hex>   # optional, checked against secret_key
    name: alice             # optional display name
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml


DEFAULT_DELETE_GRACE_MS = 1000
DEFAULT_HISTORY_PAGE = 10


class ConfigError(Exception):
    """Raised when a config file is missing or invalid."""


@dataclass
class ApplicationConf:
    db_path: str = "threadchat.db"
    thread_name: str = "channel"
    history_page: int = DEFAULT_HISTORY_PAGE
    delete_grace_ms: int = DEFAULT_DELETE_GRACE_MS
    licensed_private_channels: bool = True
    verbose: bool = False


@dataclass
class WalletConf:
    key_pairs: List[Dict[str, str]] = field(default_factory=list)
    name: str = "User"


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML mapping from disk."""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def _int_field(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{key} must be a non-negative integer, got {value!r}")
    return value


def parse_application_conf(data: Dict[str, Any]) -> ApplicationConf:
    defaults = ApplicationConf()
    return ApplicationConf(
        db_path=str(data.get('db_path', defaults.db_path)),
        thread_name=str(data.get('thread_name', defaults.thread_name)),
        history_page=_int_field(data, 'history_page', defaults.history_page),
        delete_grace_ms=_int_field(data, 'delete_grace_ms', defaults.delete_grace_ms),
        licensed_private_channels=bool(data.get('licensed_private_channels',
                                                defaults.licensed_private_channels)),
        verbose=bool(data.get('verbose', defaults.verbose)),
    )


def parse_wallet_conf(data: Dict[str, Any]) -> WalletConf:
    key_pairs = data.get('key_pairs')
    if not key_pairs or not isinstance(key_pairs, list):
        raise ConfigError("expecting key_pairs in wallet config")
    for i, pair in enumerate(key_pairs):
        if not isinstance(pair, dict) or not pair.get('secret_key'):
            raise ConfigError(f"key_pairs[{i}] is missing secret_key")
    return WalletConf(key_pairs=key_pairs, name=str(data.get('name', 'User')))
