"""
Repository Pattern for the policy and UI graphs
Centralized, named SQL read queries returning plain records
"""

from .base_repository import BaseRepository
from .endpoint_repository import EndpointRepository
from .policy_repository import PolicyRepository
from .ui_repository import UIRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "EndpointRepository",
    "PolicyRepository",
    "UIRepository",
    "UserRepository",
]
