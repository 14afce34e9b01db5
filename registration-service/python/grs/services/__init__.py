"""
Services package: the policy components used by the registration manager.
"""

from .authorization import AuthorizationService
from .capacity import CapacityController
from .conflict_detector import ConflictDetector
from .impersonation import ImpersonationValidator

__all__ = ["AuthorizationService", "CapacityController", "ConflictDetector", "ImpersonationValidator"]
