from fastapi import HTTPException

from models.enums import UserRole


class CheckRolePermission:
    async def check_admin(self, current_user):
        if current_user.role != UserRole.ADMIN:
            raise HTTPException(status_code=403, detail="Access Denied.")

    async def check_property_owner(self, current_user):
        if current_user.role not in {UserRole.PROPERTY_OWNER, UserRole.ADMIN}:
            raise HTTPException(
                status_code=403, detail="Only property owners can perform this action"
            )

    async def check_tenant(self, current_user):
        if current_user.role != UserRole.TENANT:
            raise HTTPException(status_code=403, detail="Only tenants can pay rent")

    async def check_authenticated(self, current_user):
        if current_user.role not in {
            UserRole.ADMIN,
            UserRole.PROPERTY_OWNER,
            UserRole.TENANT,
        }:
            raise HTTPException(status_code=403, detail="Access Denied")
