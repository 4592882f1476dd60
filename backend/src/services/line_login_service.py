"""
LINE Login ID token verification.

The LIFF app obtains an ID token from LINE (liff.getIDToken()) and sends it at
login. Verifying it with LINE proves which LINE user is on the other end; its
``sub`` claim is the stable LINE user id we link patients to.
"""

import logging
from typing import Optional

import httpx
from fastapi import HTTPException, status

from core.config import LINE_LOGIN_CHANNEL_ID
from core.constants import LINE_ID_TOKEN_VERIFY_URL

logger = logging.getLogger(__name__)


class LineLoginService:
    """Resolves LIFF login requests to a LINE user id."""

    @staticmethod
    async def resolve_line_user_id(
        claimed_line_user_id: str,
        id_token: Optional[str],
        channel_id: Optional[str] = None,
    ) -> str:
        """
        Determine the LINE user id for a LIFF login.

        When a LINE Login channel is configured the ID token is verified with
        LINE and must belong to the claimed user. Without a channel (local
        development) the claimed id is accepted as-is.

        Args:
            claimed_line_user_id: LINE user id reported by the LIFF client
            id_token: LINE ID token from the LIFF client
            channel_id: Channel to verify against (defaults to LINE_LOGIN_CHANNEL_ID)

        Returns:
            Verified LINE user id

        Raises:
            HTTPException: 401 if the token is missing, invalid or for another user
            httpx.HTTPStatusError: If LINE responds with a server error
        """
        channel = channel_id if channel_id is not None else LINE_LOGIN_CHANNEL_ID
        if not channel:
            logger.warning("LINE_LOGIN_CHANNEL_ID not set; trusting client-supplied LINE user id")
            return claimed_line_user_id

        if not id_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="LINEの認証情報がありません"
            )

        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                LINE_ID_TOKEN_VERIFY_URL,
                data={"id_token": id_token, "client_id": channel},
            )
        if response.status_code == 400:
            # LINE answers 400 for expired, malformed or foreign-channel tokens
            logger.info(f"LINE rejected ID token: {response.text}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="LINEの認証に失敗しました"
            )
        response.raise_for_status()

        verified_sub = response.json().get("sub")
        if verified_sub != claimed_line_user_id:
            logger.warning(f"ID token subject mismatch for {claimed_line_user_id[:10]}...")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="LINEの認証に失敗しました"
            )
        return verified_sub
