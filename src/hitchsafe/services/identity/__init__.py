"""
Identity Service Package

Provides local email/password accounts, user profiles and emergency contacts.
"""

from .identity_service import IdentityService
from .user_directory import UserDirectory

__all__ = ['IdentityService', 'UserDirectory']
