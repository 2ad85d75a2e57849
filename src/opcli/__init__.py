"""
op CLI backend package.

Wraps the ``op`` command-line tool and the records it returns.
"""

from opcli.client import OnePassClient, get_client
from opcli.models import User, Vault

__all__ = ["OnePassClient", "get_client", "User", "Vault"]
