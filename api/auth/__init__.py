"""Authentication API endpoints."""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import Optional
from pydantic import Field

from auth import (
    manager, get_current_user, AuthError, InvalidCredentialsError,
    UserExistsError, SELF_REGISTER_ROLES
)
from auth.models import CurrentUser, User, UserRole
from database.models import RecordModel

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

class RegisterRequest(RecordModel):
    """Request model for creating an account."""
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1)
    role: UserRole = UserRole.CLIENT

class LoginRequest(RecordModel):
    """Request model for logging in."""
    username: str
    password: str

class LoginResponse(RecordModel):
    """Response model for login."""
    token: str
    expires_at: str
    user: User

@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest):
    """Create a client or freelancer account."""
    if request.role not in SELF_REGISTER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot register with role {request.role.value}"
        )
    try:
        return await manager.register(
            request.username,
            request.email,
            request.password,
            request.full_name,
            request.role
        )
    except UserExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, fastapi_request: Request):
    """Check credentials and create a session."""
    try:
        return await manager.login(
            request.username,
            request.password,
            fastapi_request
        )
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.post("/logout")
async def logout(user: CurrentUser = Depends(get_current_user)):
    """Log out the current user by revoking their session."""
    try:
        await manager.logout(user.id)
        return {"success": True}
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.get("/me", response_model=User)
async def me(user: CurrentUser = Depends(get_current_user)):
    """Get the current user's account."""
    account: Optional[User] = await manager.get_user(user.id)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return account

# Export the router
__all__ = ['router']
