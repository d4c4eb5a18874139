"""Authentication module using password login and JWT session tokens.

This module provides:
1. User registration with pbkdf2 password hashing
2. Login issuing a signed session token, one active session per user
3. Dependencies for protecting routes and restricting them to admins
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Request, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.hash import pbkdf2_sha256
import asyncpg

from config import settings_conf
from database import get_pool
from .models import CurrentUser, User, UserRole

# Configure logging
logger = logging.getLogger(__name__)

# Constants
SESSION_EXPIRY_DAYS = settings_conf['session_expiry_days']
JWT_SECRET = settings_conf['jwt_secret'] or secrets.token_urlsafe(32)  # Random secret per process when unset
JWT_ALGORITHM = "HS256"
SELF_REGISTER_ROLES = (UserRole.CLIENT, UserRole.FREELANCER)

class AuthError(Exception):
    """Base exception for authentication errors."""
    pass

class InvalidCredentialsError(AuthError):
    """Raised when the username or password is wrong."""
    pass

class UserExistsError(AuthError):
    """Raised when registering a username or email that is taken."""
    pass

class SessionExpiredError(AuthError):
    """Raised when a session has expired."""
    pass

def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pbkdf2_sha256.verify(password, password_hash)
    except ValueError:
        # Malformed hash in the database
        return False

class AuthManager:
    """Manages users and sessions."""

    def __init__(self, pool=None):
        """Initialize auth manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure database pool is available."""
        if not self.pool:
            self.pool = await get_pool()

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        full_name: str,
        role: UserRole = UserRole.CLIENT
    ) -> User:
        """Create a new user account.

        Raises:
            UserExistsError: If the username or email is already registered
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO users (
                        username, email, password_hash, full_name, role
                    ) VALUES ($1, $2, $3, $4, $5)
                    RETURNING id, username, email, full_name, profile_image, role,
                              freelancer_level, freelancer_type, is_verified, created_at
                    ''',
                    username,
                    email.lower(),
                    hash_password(password),
                    full_name,
                    UserRole(role).value
                )
                logger.info(f"Registered user {username} ({role})")
                return User.from_row(row)

        except asyncpg.UniqueViolationError:
            raise UserExistsError("Username or email already registered")
        except Exception as e:
            logger.error(f"Error registering user: {e}")
            raise AuthError(f"Failed to register user: {str(e)}")

    async def login(
        self,
        username: str,
        password: str,
        request: Optional[Request] = None
    ) -> Dict[str, Any]:
        """Check credentials and create a session.

        Returns:
            Dict containing:
                - token: Session token for future requests
                - expires_at: Session expiration timestamp
                - user: The logged in user

        Raises:
            InvalidCredentialsError: If the username or password is wrong
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    SELECT id, username, email, full_name, profile_image, role,
                           freelancer_level, freelancer_type, is_verified, created_at,
                           password_hash
                    FROM users
                    WHERE username = $1
                    ''',
                    username
                )

                if not row or not verify_password(password, row['password_hash']):
                    raise InvalidCredentialsError("Invalid username or password")

                expires_at = datetime.now(timezone.utc) + timedelta(days=SESSION_EXPIRY_DAYS)

                token = jwt.encode(
                    {
                        'sub': str(row['id']),
                        'role': row['role'],
                        'exp': int(expires_at.timestamp()),
                        'jti': secrets.token_hex(8)
                    },
                    JWT_SECRET,
                    algorithm=JWT_ALGORITHM
                )

                async with conn.transaction():
                    # Revoke any existing sessions for this user
                    await conn.execute(
                        '''
                        UPDATE auth_sessions
                        SET revoked = true
                        WHERE user_id = $1 AND NOT revoked
                        ''',
                        row['id']
                    )

                    await conn.execute(
                        '''
                        INSERT INTO auth_sessions (
                            user_id, token, expires_at,
                            user_agent, ip_address
                        ) VALUES ($1, $2, $3, $4, $5)
                        ''',
                        row['id'],
                        token,
                        expires_at,
                        request.headers.get('user-agent') if request else None,
                        request.client.host if request and request.client else None
                    )

                logger.info(f"User {username} logged in")
                return {
                    'token': token,
                    'expires_at': expires_at.isoformat(),
                    'user': User.from_row(row)
                }

        except InvalidCredentialsError:
            raise
        except Exception as e:
            logger.error(f"Error logging in: {e}")
            raise AuthError(f"Failed to log in: {str(e)}")

    async def verify_session(self, token: str) -> CurrentUser:
        """Verify a session token.

        Args:
            token: The session token to verify

        Returns:
            The authenticated user

        Raises:
            SessionExpiredError: If session has expired
            AuthError: For other verification errors
        """
        await self.ensure_pool()

        try:
            payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
            user_id = int(payload['sub'])
        except ExpiredSignatureError:
            raise SessionExpiredError("Session has expired")
        except (JWTError, KeyError, ValueError) as e:
            raise AuthError(f"Invalid token: {str(e)}")

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    SELECT u.id, u.username, u.role, u.is_verified, s.expires_at
                    FROM auth_sessions s
                    JOIN users u ON u.id = s.user_id
                    WHERE s.user_id = $1 AND s.token = $2
                    AND NOT s.revoked
                    ''',
                    user_id,
                    token
                )

                if not row:
                    raise AuthError("Session not found or revoked")

                if row['expires_at'] < datetime.now(timezone.utc):
                    raise SessionExpiredError("Session has expired")

                await conn.execute(
                    'UPDATE auth_sessions SET last_used_at = now() WHERE token = $1',
                    token
                )

                return CurrentUser.from_row(row)

        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error verifying session: {e}")
            raise AuthError(f"Failed to verify session: {str(e)}")

    async def logout(self, user_id: int):
        """Log out by revoking the active session.

        Args:
            user_id: User to log out
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    '''
                    UPDATE auth_sessions
                    SET revoked = true
                    WHERE user_id = $1
                    AND NOT revoked
                    ''',
                    user_id
                )
        except Exception as e:
            logger.error(f"Error logging out: {e}")
            raise AuthError(f"Failed to log out: {str(e)}")

    async def get_user(self, user_id: int) -> Optional[User]:
        """Get a user's public record."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT id, username, email, full_name, profile_image, role,
                       freelancer_level, freelancer_type, is_verified, created_at
                FROM users
                WHERE id = $1
                ''',
                user_id
            )
            return User.from_row(row) if row else None

# Create global instance
manager = AuthManager()

# FastAPI security scheme
auth_scheme = HTTPBearer(
    auto_error=True,  # Return 401 automatically if token is missing
    description="JWT Bearer token required"
)

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)
) -> CurrentUser:
    """FastAPI dependency for getting authenticated user.

    Raises:
        HTTPException: If authentication fails
    """
    try:
        return await manager.verify_session(credentials.credentials)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired"
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

async def require_admin(
    user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    """FastAPI dependency restricting a route to admins."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user

# Export public interface
__all__ = [
    'manager',
    'AuthManager',
    'get_current_user',
    'require_admin',
    'hash_password',
    'verify_password',
    'AuthError',
    'InvalidCredentialsError',
    'UserExistsError',
    'SessionExpiredError',
    'SELF_REGISTER_ROLES'
]
