"""
Completion notifier.

ExpoNotifier always records a notification_history row (the in-app inbox) and
then pushes to the user's active Expo tokens. Only a failure to record the
notification counts as a failed notify; push delivery problems are logged and
dead tokens are deactivated.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

from exponent_server_sdk import (
    DeviceNotRegisteredError,
    PushClient,
    PushMessage,
    PushServerError,
    PushTicketError,
)

from fitquest.core.database import get_supabase_client
from fitquest.core.exceptions import ExternalDependencyError
from fitquest.services.logger import logger


CHALLENGE_COMPLETED = "challenge_completed"
CHALLENGE_JOINED = "challenge_joined"


class Notifier(Protocol):
    def notify(self, user_id: str, kind: str, payload: Dict[str, Any]) -> None: ...


def is_valid_expo_token(token: str) -> bool:
    """Check if token is a valid Expo push token format"""
    return token.startswith("ExponentPushToken[") and token.endswith("]")


def render_notification(kind: str, payload: Dict[str, Any]):
    if kind == CHALLENGE_COMPLETED:
        title = "Challenge completed! 🏆"
        body = (
            f"You finished {payload.get('challenge_title', 'your challenge')} "
            f"and earned {payload.get('points', 0)} points."
        )
        return title, body
    if kind == CHALLENGE_JOINED:
        title = payload.get("challenge_title", "Challenge")
        body = "You've successfully joined the challenge! Start tracking your progress."
        return title, body
    return "FitQuest", payload.get("message", "")


class ExpoNotifier:
    def __init__(self, client=None, push_client: Optional[PushClient] = None):
        self._client = client
        self._push_client = push_client

    @property
    def supabase(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    @property
    def push_client(self) -> PushClient:
        if self._push_client is None:
            self._push_client = PushClient()
        return self._push_client

    def notify(self, user_id: str, kind: str, payload: Dict[str, Any]) -> None:
        title, body = render_notification(kind, payload)
        notification_id = str(uuid4())

        try:
            self.supabase.table("notification_history").insert(
                {
                    "id": notification_id,
                    "user_id": user_id,
                    "notification_type": kind,
                    "title": title,
                    "body": body,
                    "data": payload,
                    "entity_type": payload.get("entity_type"),
                    "entity_id": payload.get("entity_id"),
                    "sent_at": datetime.now(timezone.utc).isoformat(),
                }
            ).execute()
        except Exception as e:
            raise ExternalDependencyError(
                f"Failed to record notification: {e}",
                {"user_id": user_id, "kind": kind},
            ) from e

        self._push(user_id, notification_id, title, body, {**payload, "type": kind})

    def _push(
        self,
        user_id: str,
        notification_id: str,
        title: str,
        body: str,
        data: Dict[str, Any],
    ) -> int:
        try:
            tokens_result = (
                self.supabase.table("device_tokens")
                .select("fcm_token, id")
                .eq("user_id", user_id)
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            logger.warning(f"Failed to load push tokens for user {user_id}: {e}")
            return 0

        tokens = [
            row
            for row in tokens_result.data or []
            if isinstance(row.get("fcm_token"), str)
            and is_valid_expo_token(row["fcm_token"])
        ]
        if not tokens:
            logger.info(
                f"No active push tokens for user {user_id}, notification saved to history only"
            )
            return 0

        messages = [
            PushMessage(
                to=row["fcm_token"],
                title=title,
                body=body,
                data=data,
                sound="default",
                priority="high",
            )
            for row in tokens
        ]

        delivered = 0
        invalid_token_ids: List[str] = []
        try:
            responses = self.push_client.publish_multiple(messages)
            for token_row, response in zip(tokens, responses):
                try:
                    response.validate_response()
                    delivered += 1
                except DeviceNotRegisteredError:
                    invalid_token_ids.append(token_row["id"])
                except PushTicketError as exc:
                    logger.warning(
                        f"Push failed for token {token_row['fcm_token'][:20]}...: {exc}"
                    )
        except PushServerError as exc:
            logger.error(f"Batch push failed for user {user_id}: {exc}")
        except Exception as exc:
            logger.error(f"Batch push failed for user {user_id}: {exc}")

        if invalid_token_ids:
            try:
                self.supabase.table("device_tokens").update({"is_active": False}).in_(
                    "id", invalid_token_ids
                ).execute()
            except Exception as e:
                logger.warning(f"Failed to deactivate invalid tokens: {e}")

        if delivered > 0:
            try:
                self.supabase.table("notification_history").update(
                    {"delivered_at": datetime.now(timezone.utc).isoformat()}
                ).eq("id", notification_id).execute()
            except Exception as e:
                logger.warning(f"Failed to update notification history: {e}")

        return delivered


class LogNotifier:
    """Notifier for STORAGE_BACKEND=memory: logs instead of pushing."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def notify(self, user_id: str, kind: str, payload: Dict[str, Any]) -> None:
        self.sent.append({"user_id": user_id, "kind": kind, "payload": payload})
        logger.info(f"Notification {kind} for user {user_id}", payload)
