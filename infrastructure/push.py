"""Push notification senders"""
import asyncio
import logging
import threading
from typing import Callable, List, Optional

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from domain.exceptions import PushDeliveryError
from domain.gateways import PushSender
from domain.notifications import PushMessage, PushResult

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
FCM_SCOPES = ["https://www.googleapis.com/auth/firebase.messaging"]


class InMemoryPushSender(PushSender):
    """Records messages instead of delivering them; every token counts as delivered"""

    def __init__(self, failing_tokens: Optional[List[str]] = None):
        self.sent: List[tuple] = []
        self._failing_tokens = set(failing_tokens or [])

    async def send_multicast(self, tokens: List[str], message: PushMessage) -> PushResult:
        failed = [t for t in tokens if t in self._failing_tokens]
        for token in tokens:
            if token not in self._failing_tokens:
                self.sent.append((token, message))
        logger.info("Recorded push '%s' for %d token(s)", message.title, len(tokens))
        return PushResult(
            success_count=len(tokens) - len(failed),
            failure_count=len(failed),
            failed_tokens=failed
        )


class ServiceAccountTokenProvider:
    """OAuth access tokens for FCM minted from a service-account key file.

    The token is cached and refreshed once google-auth reports it expired.
    """

    def __init__(self, service_account_file: str):
        self._service_account_file = service_account_file
        self._credentials = None
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            try:
                if self._credentials is None:
                    self._credentials = service_account.Credentials.from_service_account_file(
                        self._service_account_file, scopes=FCM_SCOPES
                    )
                if not self._credentials.valid:
                    self._credentials.refresh(Request())
                    logger.info("Refreshed FCM access token, expires %s", self._credentials.expiry)
            except (GoogleAuthError, OSError, ValueError) as e:
                raise PushDeliveryError(f"FCM credentials unavailable: {e}") from e
            return self._credentials.token


class FcmPushSender(PushSender):
    """Firebase Cloud Messaging HTTP v1 sender, one request per device token"""

    def __init__(
        self,
        project_id: str,
        token_provider: Callable[[], str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._url = FCM_SEND_URL.format(project_id=project_id)
        self._token_provider = token_provider
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_service_account(cls, project_id: str, service_account_file: str, timeout: float = 10.0):
        return cls(project_id, ServiceAccountTokenProvider(service_account_file), timeout)

    def _payload(self, token: str, message: PushMessage) -> dict:
        return {
            "message": {
                "token": token,
                "notification": {
                    "title": message.title,
                    "body": message.body,
                },
                "data": dict(message.data),
            }
        }

    async def send_multicast(self, tokens: List[str], message: PushMessage) -> PushResult:
        # Refreshing credentials blocks on a token request
        access_token = await asyncio.to_thread(self._token_provider)
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json; charset=UTF-8",
        }
        result = PushResult()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                for token in tokens:
                    response = await client.post(self._url, headers=headers, json=self._payload(token, message))
                    if response.status_code == 200:
                        result.success_count += 1
                    else:
                        logger.warning("FCM rejected token %s...: HTTP %s", token[:12], response.status_code)
                        result.failure_count += 1
                        result.failed_tokens.append(token)
        except httpx.HTTPError as e:
            raise PushDeliveryError(f"FCM request failed: {e}", {"delivered": result.success_count}) from e
        return result
