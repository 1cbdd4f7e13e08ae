"""
Rewards ledger adapters.

credit() must be safe to call more than once with the same idempotency key:
- SupabaseRewardsLedger upserts into points_transactions on idempotency_key
  and ignores duplicates.
- HttpRewardsLedger posts to an external ledger with an Idempotency-Key header
  and leaves deduplication to the ledger.
- InMemoryRewardsLedger keeps credits in a dict (memory backend).

Any failure to reach the ledger raises ExternalDependencyError.
"""

from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

import httpx

from fitquest.core.config import settings
from fitquest.core.database import get_supabase_client
from fitquest.core.exceptions import ExternalDependencyError


class RewardsLedger(Protocol):
    def credit(
        self,
        user_id: str,
        points: int,
        source_kind: str,
        source_id: str,
        idempotency_key: str,
    ) -> None: ...


class SupabaseRewardsLedger:
    def __init__(self, client=None):
        self._client = client

    @property
    def supabase(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def credit(
        self,
        user_id: str,
        points: int,
        source_kind: str,
        source_id: str,
        idempotency_key: str,
    ) -> None:
        try:
            self.supabase.table("points_transactions").upsert(
                {
                    "user_id": user_id,
                    "points": points,
                    "source_kind": source_kind,
                    "source_id": source_id,
                    "idempotency_key": idempotency_key,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                },
                on_conflict="idempotency_key",
                ignore_duplicates=True,
            ).execute()
        except Exception as e:
            raise ExternalDependencyError(
                f"Rewards ledger credit failed: {e}",
                {"user_id": user_id, "idempotency_key": idempotency_key},
            ) from e


class HttpRewardsLedger:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.REWARDS_LEDGER_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.REWARDS_LEDGER_API_KEY
        self.timeout = (
            timeout
            if timeout is not None
            else float(settings.REWARDS_LEDGER_TIMEOUT_SECONDS)
        )
        self.transport = transport

    def credit(
        self,
        user_id: str,
        points: int,
        source_kind: str,
        source_id: str,
        idempotency_key: str,
    ) -> None:
        headers = {"Idempotency-Key": idempotency_key}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "user_id": user_id,
            "points": points,
            "source_kind": source_kind,
            "source_id": source_id,
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    f"{self.base_url}/credits", json=payload, headers=headers
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalDependencyError(
                f"Rewards ledger credit failed: {e}",
                {"user_id": user_id, "idempotency_key": idempotency_key},
            ) from e


class InMemoryRewardsLedger:
    def __init__(self):
        self.credits: Dict[str, Dict] = {}

    def credit(
        self,
        user_id: str,
        points: int,
        source_kind: str,
        source_id: str,
        idempotency_key: str,
    ) -> None:
        self.credits.setdefault(
            idempotency_key,
            {
                "user_id": user_id,
                "points": points,
                "source_kind": source_kind,
                "source_id": source_id,
            },
        )

    def balance(self, user_id: str) -> int:
        return sum(c["points"] for c in self.credits.values() if c["user_id"] == user_id)
