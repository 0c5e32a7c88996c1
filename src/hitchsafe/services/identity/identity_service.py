"""
Local identity provider

Email/password accounts stored in the credentials collection, keyed by the
lowercased email. Passwords are hashed with salted PBKDF2-SHA256. Failures
raise AuthError with the provider-style codes the app surfaces to users
(auth/invalid-email, auth/weak-password, auth/email-already-in-use,
auth/invalid-credential).
"""

import asyncio
import hashlib
import logging
import re
import secrets
import uuid
from typing import Any, Dict, Optional, Tuple

from hitchsafe.core.errors import AuthError
from hitchsafe.core.interfaces import DocumentStore, IdentityProvider
from hitchsafe.models.location import now_ms
from hitchsafe.models.user import User, UserType
from .user_directory import UserDirectory


CREDENTIALS_COLLECTION = 'credentials'
PBKDF2_ITERATIONS = 100000

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class IdentityService(IdentityProvider):
    """Sign-up, sign-in and the signed-in user for this process"""

    def __init__(self, store: DocumentStore, users: UserDirectory,
                 config: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.users = users
        self.config = config or {}
        self.min_password_length = self.config.get('min_password_length', 6)
        self._current_user: Optional[str] = None

    def hash_password(self, password: str, salt: Optional[str] = None) -> Tuple[str, str]:
        """Hash password with salt"""
        if salt is None:
            salt = secrets.token_hex(16)

        password_hash = hashlib.pbkdf2_hmac(
            'sha256',
            password.encode('utf-8'),
            salt.encode('utf-8'),
            PBKDF2_ITERATIONS
        )

        return password_hash.hex(), salt

    def verify_password(self, password: str, password_hash: str, salt: str) -> bool:
        computed_hash, _ = self.hash_password(password, salt)
        return secrets.compare_digest(computed_hash, password_hash)

    def _validate(self, email: str, password: str):
        if not email or not EMAIL_PATTERN.match(email):
            raise AuthError('auth/invalid-email', f"Invalid email address: {email!r}")
        if not password or len(password) < self.min_password_length:
            raise AuthError(
                'auth/weak-password',
                f"Password must be at least {self.min_password_length} characters"
            )

    def get_current_user(self) -> Optional[str]:
        return self._current_user

    def require_current_user(self) -> str:
        if self._current_user is None:
            raise AuthError('auth/no-current-user', "No user is signed in")
        return self._current_user

    async def sign_up(self, email: str, password: str, profile: Dict[str, Any]) -> str:
        """
        Create an account and its user profile, then sign in as it

        Args:
            email: Account email, unique case-insensitively
            password: Plain-text password
            profile: firstName, lastName, phoneNumber and userType

        Returns:
            The new user id
        """
        email = (email or '').strip()
        self._validate(email, password)

        key = email.lower()
        if await self.store.get_document(CREDENTIALS_COLLECTION, key) is not None:
            raise AuthError('auth/email-already-in-use', f"{email} is already registered")

        uid = uuid.uuid4().hex
        password_hash, salt = await asyncio.to_thread(self.hash_password, password)
        await self.store.set_document(CREDENTIALS_COLLECTION, key, {
            'uid': uid,
            'email': email,
            'passwordHash': password_hash,
            'salt': salt,
            'createdAt': now_ms()
        })

        user_type = profile.get('userType', UserType.HITCHHIKER)
        try:
            user_type = UserType(user_type) if not isinstance(user_type, UserType) else user_type
        except ValueError:
            raise AuthError('auth/invalid-profile', f"Unknown userType: {user_type!r}")

        await self.users.create_user(User(
            uid=uid,
            email=email,
            first_name=profile.get('firstName', ''),
            last_name=profile.get('lastName', ''),
            phone_number=profile.get('phoneNumber', ''),
            user_type=user_type
        ))

        self._current_user = uid
        self.logger.info(f"Registered user {uid}")
        return uid

    async def sign_in(self, email: str, password: str) -> str:
        credentials = await self.store.get_document(CREDENTIALS_COLLECTION, (email or '').strip().lower())
        if credentials is None:
            raise AuthError('auth/invalid-credential', "Invalid email or password")

        valid = await asyncio.to_thread(
            self.verify_password, password or '', credentials['passwordHash'], credentials['salt']
        )
        if not valid:
            self.logger.warning(f"Failed sign-in for {email}")
            raise AuthError('auth/invalid-credential', "Invalid email or password")

        self._current_user = credentials['uid']
        self.logger.info(f"User {self._current_user} signed in")
        return self._current_user

    async def sign_out(self) -> None:
        if self._current_user is not None:
            self.logger.info(f"User {self._current_user} signed out")
        self._current_user = None
