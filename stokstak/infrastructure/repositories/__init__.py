from .base import BaseRepository, TenantScopeRequiredError
from .membership_repository import MembershipRepository

__all__ = ["BaseRepository", "MembershipRepository", "TenantScopeRequiredError"]
