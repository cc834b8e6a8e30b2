"""Directory routes — departments and user accounts.

GET   /api/portal/departments               — list (optional ?category=)
POST  /api/portal/departments               — create (admin)
GET   /api/portal/departments/{id}          — detail
GET   /api/portal/users                     — list accounts (admin)
POST  /api/portal/users                     — create account (admin)
PATCH /api/portal/users/{id}/status         — activate / deactivate (admin)
PATCH /api/portal/users/{id}/password       — reset password (admin)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from noticeboard.api.deps import get_current_identity, get_directory
from noticeboard.core.policies import Identity, ensure_admin
from noticeboard.db.models import Department, User
from noticeboard.directory.service import DirectoryService

router = APIRouter(prefix="/api/portal", tags=["directory"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class CreateDepartmentBody(BaseModel):
    name: str
    website: str | None = None
    description: str | None = None
    category: str | None = None


class CreateUserBody(BaseModel):
    username: str
    password: str
    role: str
    department_id: int | None = None


class UserStatusBody(BaseModel):
    is_active: bool


class PasswordResetBody(BaseModel):
    new_password: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _serialize_department(department: Department) -> dict:
    return {
        "id": department.id,
        "code": department.code,
        "name": department.name,
        "website": department.website,
        "description": department.description,
        "category": department.category,
    }


def _serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "department_id": user.department_id,
        "department_name": user.department.name if user.department else None,
        "department_code": user.department.code if user.department else None,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "last_login": user.last_login.isoformat() if user.last_login else None,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/departments", summary="List departments")
def list_departments(category: str | None = None, directory: DirectoryService = Depends(get_directory)):
    return [_serialize_department(d) for d in directory.list_departments(category)]


@router.post("/departments", status_code=201, summary="Create a department")
def create_department(
    body: CreateDepartmentBody,
    identity: Identity = Depends(get_current_identity),
    directory: DirectoryService = Depends(get_directory),
):
    ensure_admin(identity)
    department = directory.create_department(
        body.name,
        website=body.website,
        description=body.description,
        category=body.category,
    )
    return _serialize_department(department)


@router.get("/departments/{department_id}", summary="Get a department")
def get_department(department_id: int, directory: DirectoryService = Depends(get_directory)):
    return _serialize_department(directory.get_department(department_id))


@router.get("/users", summary="List user accounts")
def list_users(
    identity: Identity = Depends(get_current_identity),
    directory: DirectoryService = Depends(get_directory),
):
    return [_serialize_user(u) for u in directory.list_users(identity)]


@router.post("/users", status_code=201, summary="Create a user account")
def create_user(
    body: CreateUserBody,
    identity: Identity = Depends(get_current_identity),
    directory: DirectoryService = Depends(get_directory),
):
    user = directory.create_user(
        identity,
        username=body.username,
        password=body.password,
        role=body.role,
        department_id=body.department_id,
    )
    return {"success": True, "user_id": user.id}


@router.patch("/users/{user_id}/status", summary="Activate or deactivate an account")
def set_user_status(
    user_id: int,
    body: UserStatusBody,
    identity: Identity = Depends(get_current_identity),
    directory: DirectoryService = Depends(get_directory),
):
    directory.set_active(identity, user_id, body.is_active)
    return {"success": True}


@router.patch("/users/{user_id}/password", summary="Reset a user's password")
def reset_password(
    user_id: int,
    body: PasswordResetBody,
    identity: Identity = Depends(get_current_identity),
    directory: DirectoryService = Depends(get_directory),
):
    directory.reset_password(identity, user_id, body.new_password)
    return {"success": True, "message": "Password reset successfully."}
