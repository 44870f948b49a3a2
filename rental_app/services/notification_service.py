import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date
from html import escape
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from core.check_permission import CheckRolePermission
from core.settings import settings
from email_notify.email_service import EmailService, email_service, styled_template
from models.enums import (
    DeliveryChannel,
    DeliveryMethod,
    DeliveryStatus,
    NotificationType,
)
from repos.notification_repo import NotificationRepo
from repos.tenant_repo import TenantRepo
from schemas.schema import (
    NotificationBatchOut,
    NotificationCreate,
    NotificationOut,
    NotificationPageOut,
)
from services.delivery_channels import channels_for, resolve_delivery_method
from services.dues_service import DuesBreakdown, compute_dues
from sms_notify.sms_service import UmsSmsClient, sms_client
from whatsapp_notify.whatsapp_service import ApiWapClient, whatsapp_client

logger = logging.getLogger(__name__)

FALLBACK_MESSAGES = {
    NotificationType.MAINTENANCE: "Dear {name}, scheduled maintenance soon. Please allow access.",
    NotificationType.TENANT: "Dear {name}, tenancy update: review your agreement.",
    NotificationType.OTHER: "Dear {name}, important notice from Smart Choice.",
}

EMAIL_COPY = {
    NotificationType.PAYMENT: (
        "Payment Reminder",
        "This is a reminder regarding your rental payment.",
        "Please make your payment at your earliest convenience.",
    ),
    NotificationType.MAINTENANCE: (
        "Maintenance Notification",
        "We have scheduled maintenance for your property.",
        "Please ensure access to your property or contact us for details.",
    ),
    NotificationType.TENANT: (
        "Tenant Update",
        "Important update regarding your tenancy.",
        "Please review the update and contact us if you have questions.",
    ),
    NotificationType.OTHER: (
        "Property Notification",
        "Important information from your property manager.",
        "Please review and contact us if needed.",
    ),
}


@dataclass
class ChannelOutcome:
    channel: DeliveryChannel
    success: bool
    error: Optional[str] = None


def payment_message(name: str, dues: DuesBreakdown) -> str:
    cur = settings.CURRENCY_LABEL
    return (
        f"Dear {name}, overdue: Rent {cur} {dues.rent_dues:.2f}, "
        f"Deposit {cur} {dues.deposit_dues:.2f}, "
        f"Utility {cur} {dues.utility_dues:.2f}. "
        f"Total: {cur} {dues.total_remaining_dues:.2f}. Pay now!"
    )


def compose_message(
    tenant, type: NotificationType, message: Optional[str], dues: Optional[DuesBreakdown]
) -> str:
    if type == NotificationType.PAYMENT:
        return payment_message(tenant.name, dues)
    if message:
        return message
    return FALLBACK_MESSAGES[type].format(name=tenant.name)


def compose_email(
    tenant, type: NotificationType, message: str, dues: Optional[DuesBreakdown]
) -> tuple[str, str]:
    title, intro, action = EMAIL_COPY[type]
    cur = settings.CURRENCY_LABEL
    items = [f"<li><strong>Message:</strong> {escape(message)}</li>"]
    if type == NotificationType.PAYMENT and dues is not None:
        items += [
            f"<li><strong>Rent Dues:</strong> {cur} {dues.rent_dues:.2f}</li>",
            f"<li><strong>Deposit Dues:</strong> {cur} {dues.deposit_dues:.2f}</li>",
            f"<li><strong>Utility Dues:</strong> {cur} {dues.utility_dues:.2f}</li>",
            f"<li><strong>Total Due:</strong> {cur} {dues.total_remaining_dues:.2f}</li>",
        ]
    items.append(f"<li><strong>Action:</strong> {escape(action)}</li>")
    details = "<ul>" + "".join(items) + "</ul>"
    return title, styled_template(name=tenant.name, title=title, intro=intro, details=details)


class NotificationService:
    def __init__(
        self,
        db,
        sms: UmsSmsClient | None = None,
        email: EmailService | None = None,
        whatsapp: ApiWapClient | None = None,
    ):
        self.repo: NotificationRepo = NotificationRepo(db)
        self.tenant_repo: TenantRepo = TenantRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.sms = sms or sms_client
        self.email = email or email_service
        self.whatsapp = whatsapp or whatsapp_client

    async def _load_targets(self, current_user, tenant_id) -> list:
        if tenant_id == "all":
            return await self.tenant_repo.get_all_by_owner(current_user.id)

        tenant = await self.tenant_repo.get_by_id(tenant_id)
        if not tenant:
            raise HTTPException(status_code=404, detail="Tenant not found")
        if tenant.owner_id != current_user.id:
            logger.warning(
                f"User {current_user.id} tried to notify tenant {tenant_id} "
                f"owned by {tenant.owner_id}"
            )
            raise HTTPException(
                status_code=403, detail="You are not the owner of this tenant"
            )
        return [tenant]

    async def _attempt(
        self,
        channel: DeliveryChannel,
        tenant,
        message: str,
        subject: str,
        html: str,
    ) -> ChannelOutcome:
        try:
            if channel == DeliveryChannel.SMS:
                if not tenant.phone:
                    return ChannelOutcome(channel, False, "No phone number on file for SMS")
                await self.sms.send(tenant.phone, message[: settings.SMS_MAX_LENGTH])
                return ChannelOutcome(channel, True)

            if channel == DeliveryChannel.EMAIL:
                if not tenant.email:
                    return ChannelOutcome(channel, False, "No email address on file")
                await self.email.send(tenant.email, subject, html)
                return ChannelOutcome(channel, True)

            if not tenant.phone:
                return ChannelOutcome(
                    channel, False, "No phone number on file for WhatsApp"
                )
            result = await self.whatsapp.send(tenant.phone, message)
            if result.success:
                return ChannelOutcome(channel, True)
            error = result.error.message if result.error else "WhatsApp delivery failed"
            return ChannelOutcome(channel, False, error)

        except Exception as e:
            logger.warning(f"{channel.value} delivery to tenant {tenant.id} failed: {e}")
            return ChannelOutcome(channel, False, str(e) or type(e).__name__)

    async def deliver(
        self,
        tenant,
        method: DeliveryMethod,
        message: str,
        subject: str,
        html: str,
    ) -> tuple[DeliveryStatus, Optional[str]]:
        status = DeliveryStatus.PENDING
        errors: List[str] = []

        if method == DeliveryMethod.APP:
            return DeliveryStatus.SUCCESS, None

        for channel in channels_for(method):
            outcome = await self._attempt(channel, tenant, message, subject, html)
            if outcome.success:
                status = DeliveryStatus.SUCCESS
            else:
                errors.append(f"{channel.value}: {outcome.error}")
                if status != DeliveryStatus.SUCCESS:
                    status = DeliveryStatus.FAILED

        return status, "; ".join(errors) or None

    async def _notify_tenant(self, owner_id: uuid.UUID, tenant, payload, today: date):
        dues = None
        if payload.type == NotificationType.PAYMENT:
            dues = compute_dues(tenant, today)
            if not dues.is_overdue:
                logger.info(f"Tenant {tenant.id} is up to date, skipping payment notice")
                return None

        message = compose_message(tenant, payload.type, payload.message, dues)
        method = resolve_delivery_method(payload.delivery_method, tenant.delivery_method)
        subject, html = compose_email(tenant, payload.type, message, dues)

        status, error_details = await self.deliver(tenant, method, message, subject, html)
        logger.info(
            f"Notification to tenant {tenant.id} via {method.value}: {status.value}"
        )

        return await self.repo.create(
            {
                "owner_id": owner_id,
                "tenant_id": tenant.id,
                "tenant_name": tenant.name,
                "message": message,
                "type": payload.type,
                "delivery_method": method,
                "delivery_status": status,
                "error_details": error_details,
                "dues": dues.to_dict() if dues else None,
            }
        )

    async def _record_failure(
        self, owner_id: uuid.UUID, tenant_id: uuid.UUID, tenant_name: str, payload, error
    ):
        try:
            return await self.repo.create(
                {
                    "owner_id": owner_id,
                    "tenant_id": tenant_id,
                    "tenant_name": tenant_name,
                    "message": payload.message or f"{payload.type.value} notification",
                    "type": payload.type,
                    "delivery_method": payload.delivery_method,
                    "delivery_status": DeliveryStatus.FAILED,
                    "error_details": str(error) or type(error).__name__,
                }
            )
        except SQLAlchemyError:
            logger.exception(f"Could not record failed notification for tenant {tenant_id}")
            return None

    async def dispatch(
        self, current_user, payload: NotificationCreate, today: date
    ) -> NotificationBatchOut:
        await self.permission.check_property_owner(current_user=current_user)
        owner_id = current_user.id
        tenants = await self._load_targets(current_user, payload.tenant_id)

        created = []
        failed_tenants: List[uuid.UUID] = []
        # a failed write rolls back and expires every loaded tenant
        expired = False
        for tenant in tenants:
            if expired:
                await self.tenant_repo.refresh(tenant)
            tenant_id, tenant_name = tenant.id, tenant.name
            try:
                record = await self._notify_tenant(owner_id, tenant, payload, today)
            except Exception as e:
                logger.exception(f"Notification to tenant {tenant_id} failed")
                expired = True
                failed_tenants.append(tenant_id)
                record = await self._record_failure(
                    owner_id, tenant_id, tenant_name, payload, e
                )
            if record is not None:
                created.append(record)

        if not created and not failed_tenants:
            reason = (
                "all selected tenants are up to date"
                if payload.type == NotificationType.PAYMENT and tenants
                else "no tenants matched"
            )
            return NotificationBatchOut(
                message=f"No notifications to send: {reason}",
                nothing_to_send=True,
            )

        return NotificationBatchOut(
            success=not failed_tenants,
            message=f"Notification processed for {len(created)} tenant(s)",
            count=len(created),
            notifications=[NotificationOut.model_validate(n) for n in created],
            failed_tenants=failed_tenants,
        )

    async def list_notifications(
        self,
        current_user,
        page: int = 1,
        limit: int = 10,
        type: NotificationType | None = None,
    ) -> NotificationPageOut:
        await self.permission.check_property_owner(current_user=current_user)
        items, total = await self.repo.list_for_owner(
            current_user.id, offset=(page - 1) * limit, limit=limit, type=type
        )
        return NotificationPageOut(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
            notifications=[NotificationOut.model_validate(n) for n in items],
        )

    async def mark_read(self, current_user, notification_id: uuid.UUID) -> dict:
        await self.permission.check_property_owner(current_user=current_user)
        if not await self.repo.mark_read(notification_id, current_user.id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return {"success": True, "message": "Notification marked as read"}

    async def delete_notification(
        self, current_user, notification_id: uuid.UUID
    ) -> dict:
        await self.permission.check_property_owner(current_user=current_user)
        if not await self.repo.delete(notification_id, current_user.id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return {"success": True, "message": "Notification deleted"}
