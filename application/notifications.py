"""Application Services - Push notifications"""
import logging
from uuid import UUID
from typing import List, Optional, Dict, Any, Tuple

from domain.auth import UserInDB
from domain.enums import NotificationTargetType, NotificationType, NotificationStatus, UserRole
from domain.exceptions import PushDeliveryError, ValidationFailedError, ResourceNotFoundError
from domain.gateways import PushSender
from domain.notifications import NotificationRecord, PushMessage, PushResult
from domain.repositories import UserRepository, NotificationRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """Targets users, sends through the push port and keeps the history"""

    def __init__(self,
                 users: UserRepository,
                 history: NotificationRepository,
                 sender: PushSender):
        self.users = users
        self.history = history
        self.sender = sender

    async def resolve_recipients(
        self,
        target_type: NotificationTargetType,
        target_ids: List[str],
        vendor_id: Optional[UUID] = None
    ) -> List[UserInDB]:
        """Active users with a device token that match the target"""
        users = [u for u in await self.users.find_all() if not u.disabled and u.fcm_token]

        if target_type == NotificationTargetType.VENDOR_SPECIFIC:
            if vendor_id is None:
                raise ValidationFailedError("vendor_id is required for vendor specific notifications")
            return [u for u in users if vendor_id in u.vendor_ids]
        if target_type == NotificationTargetType.ROLE_SPECIFIC:
            try:
                roles = {UserRole(r) for r in target_ids} or {UserRole.STUDENT}
            except ValueError as e:
                raise ValidationFailedError(f"Unknown role in target ids: {e}")
            return [u for u in users if u.role in roles]
        if target_type == NotificationTargetType.USER_SPECIFIC:
            wanted = set(target_ids)
            return [u for u in users if str(u.user_id) in wanted]
        return users

    async def send_notification(
        self,
        title: str,
        body: str,
        target_type: NotificationTargetType = NotificationTargetType.ALL,
        target_ids: Optional[List[str]] = None,
        type: NotificationType = NotificationType.GENERAL,
        vendor_id: Optional[UUID] = None,
        offer_data: Optional[Dict[str, str]] = None,
        created_by: Optional[UUID] = None
    ) -> NotificationRecord:
        target_ids = target_ids or []
        offer_data = offer_data or {}
        message = PushMessage(title=title, body=body, data={"type": type.value, **offer_data})

        recipients = await self.resolve_recipients(target_type, target_ids, vendor_id)
        tokens = [u.fcm_token for u in recipients]

        record = NotificationRecord(
            title=title,
            body=body,
            type=type,
            target_type=target_type,
            target_ids=target_ids,
            vendor_id=vendor_id,
            offer_data=offer_data,
            sent_count=len(tokens),
            created_by=created_by
        )

        if not tokens:
            record.status = NotificationStatus.NO_RECIPIENTS
            logger.info("Notification '%s' has no recipients for %s", title, target_type.value)
            return await self.history.save(record)

        try:
            result = await self.sender.send_multicast(tokens, message)
        except PushDeliveryError as e:
            logger.error("Notification '%s' failed: %s", title, e)
            record.status = NotificationStatus.FAILED
            record.error = str(e)
            return await self.history.save(record)

        record.delivered_count = result.success_count
        record.status = NotificationStatus.SENT
        logger.info("Notification '%s' delivered to %d of %d device(s)", title, result.success_count, len(tokens))
        return await self.history.save(record)

    async def send_vendor_offer(
        self,
        vendor_id: UUID,
        title: str,
        body: str,
        offer_data: Optional[Dict[str, str]] = None,
        created_by: Optional[UUID] = None
    ) -> NotificationRecord:
        return await self.send_notification(
            title=title,
            body=body,
            target_type=NotificationTargetType.VENDOR_SPECIFIC,
            target_ids=[str(vendor_id)],
            type=NotificationType.OFFER,
            vendor_id=vendor_id,
            offer_data=offer_data,
            created_by=created_by
        )

    async def get_history(self, page: int = 1, limit: int = 20) -> Tuple[List[NotificationRecord], int]:
        if page < 1 or limit < 1:
            raise ValidationFailedError("Page and limit must be positive")
        total = await self.history.count()
        items = await self.history.find_page((page - 1) * limit, limit)
        return items, total

    async def get_stats(self) -> Dict[str, Any]:
        records = await self.history.find_all()
        users = await self.users.find_all()
        return {
            "total_notifications": len(records),
            "total_sent": sum(r.sent_count for r in records),
            "total_delivered": sum(r.delivered_count for r in records),
            "total_opened": sum(r.opened_count for r in records),
            "active_tokens": len([u for u in users if u.fcm_token and not u.disabled]),
        }

    async def update_token(self, user_id: UUID, token: str) -> UserInDB:
        if not token or not token.strip():
            raise ValidationFailedError("FCM token is required")
        user = await self.users.find_by_id(user_id)
        if not user:
            raise ResourceNotFoundError("User", user_id)
        user.fcm_token = token.strip()
        return await self.users.update(user)

    async def send_test(self, token: str, title: str, body: str) -> PushResult:
        if not token:
            raise ValidationFailedError("FCM token is required")
        logger.info("Sending test notification '%s'", title)
        return await self.sender.send_multicast([token], PushMessage(title=title, body=body, data={"type": "test"}))
