from __future__ import annotations

import logging
import time
from typing import Callable
from urllib.parse import quote

import httpx

from stampcard.config import Settings


logger = logging.getLogger(__name__)

TOKEN_EXPIRY_BUFFER_SECONDS = 10
DEFAULT_TOKEN_LIFETIME_SECONDS = 60


class TokenError(RuntimeError):
    pass


class TokenProvider:
    """Client-credentials access token, cached until shortly before it expires.

    One instance is built at startup and handed to whoever needs service auth.
    Concurrent first fetches are not deduplicated; the last one wins.
    """

    def __init__(
        self,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
        http_client: httpx.Client,
        buffer_seconds: int = TOKEN_EXPIRY_BUFFER_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http_client
        self._buffer_seconds = buffer_seconds
        self._clock = clock

        self._access_token: str | None = None
        self._expiry: float = 0

    def get_access_token(self) -> str:
        now = self._clock()
        if self._access_token and now < self._expiry:
            return self._access_token

        response = self._http.post(
            self._token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )
        response.raise_for_status()

        payload = response.json() or {}
        token = payload.get("access_token")
        if not token:
            raise TokenError("token endpoint returned no access_token")

        expires_in = int(payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
        self._access_token = token
        self._expiry = now + expires_in - self._buffer_seconds
        return token

    def invalidate(self) -> None:
        self._access_token = None
        self._expiry = 0


class UserServiceClient:
    def __init__(self, *, base_url: str, token_provider: TokenProvider, http_client: httpx.Client) -> None:
        self._base_url = base_url.rstrip("/")
        self._tokens = token_provider
        self._http = http_client

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._tokens.get_access_token()}"}

    def update_membership_counters(
        self,
        user_id: str,
        business_id: str,
        *,
        valid_stamps: int | None = None,
        valid_coupons: int | None = None,
        total_stamps_delta: int | None = None,
        total_coupons_delta: int | None = None,
    ) -> dict:
        body = {
            "businessId": business_id,
            "validStamps": valid_stamps,
            "validCoupons": valid_coupons,
            "totalStampsDelta": total_stamps_delta,
            "totalCouponsDelta": total_coupons_delta,
        }
        body = {k: v for k, v in body.items() if v is not None}

        response = self._http.post(
            f"{self._base_url}/internal/v1/users/{quote(user_id, safe='')}/memberships/counters",
            json=body,
            headers=self._auth_headers(),
        )
        if response.status_code == 401:
            # stale token on the remote side; next call fetches a fresh one
            self._tokens.invalidate()
        response.raise_for_status()
        return body


class CounterSync:
    """Best-effort push of membership counters to the user-service.

    The local ledger is already committed when this runs, so nothing raised
    here may reach the caller: failures are logged with the payload so the
    push can be replayed by hand.
    """

    def __init__(self, client: UserServiceClient | None, *, http_client: httpx.Client | None = None) -> None:
        self._client = client
        self._http = http_client

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def sync_counters(
        self,
        user_id: str,
        business_id: str,
        *,
        valid_stamps: int | None = None,
        valid_coupons: int | None = None,
        total_stamps_delta: int | None = None,
        total_coupons_delta: int | None = None,
    ) -> bool:
        payload = {
            "validStamps": valid_stamps,
            "validCoupons": valid_coupons,
            "totalStampsDelta": total_stamps_delta,
            "totalCouponsDelta": total_coupons_delta,
        }
        context = {"user_id": user_id, "business_id": business_id, "payload": payload}

        if self._client is None:
            logger.warning("counter sync skipped: user-service credentials not configured", extra=context)
            return False

        try:
            self._client.update_membership_counters(
                user_id,
                business_id,
                valid_stamps=valid_stamps,
                valid_coupons=valid_coupons,
                total_stamps_delta=total_stamps_delta,
                total_coupons_delta=total_coupons_delta,
            )
        except Exception:
            logger.exception(
                "counter sync failed for user=%s business=%s payload=%s",
                user_id,
                business_id,
                payload,
                extra=context,
            )
            return False

        logger.debug("counter sync ok", extra=context)
        return True

    def close(self) -> None:
        if self._http is not None:
            self._http.close()


def build_counter_sync(settings: Settings) -> CounterSync:
    if not settings.counter_sync_configured:
        logger.warning("KEYCLOAK_TOKEN_URL/CLIENT_ID/CLIENT_SECRET missing, counter sync disabled")
        return CounterSync(None)

    http_client = httpx.Client(timeout=settings.user_service_timeout_seconds)
    tokens = TokenProvider(
        token_url=settings.keycloak_token_url,
        client_id=settings.keycloak_client_id,
        client_secret=settings.keycloak_client_secret,
        http_client=http_client,
    )
    client = UserServiceClient(
        base_url=settings.user_service_url,
        token_provider=tokens,
        http_client=http_client,
    )
    return CounterSync(client, http_client=http_client)
