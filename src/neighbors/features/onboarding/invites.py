"""Invite code redemption."""

import logging
from uuid import UUID

from src.neighbors.features.onboarding.models import InviteRedemption
from src.neighbors.services.database import StoreError, SupabaseQueryBuilder, get_query_builder

logger = logging.getLogger(__name__)


class InviteService:
    def __init__(self, db: SupabaseQueryBuilder | None = None) -> None:
        self.db = db or get_query_builder()

    def redeem(self, code: str, invited_user_id: UUID | str) -> InviteRedemption | None:
        """
        Redeem an invite code for a newly onboarded resident.

        Failures are logged and reported as None; they never block landing.
        """
        try:
            rows = self.db.rpc(
                "redeem_invite_code", {"_code": code, "_invited_user_id": str(invited_user_id)}
            )
        except StoreError as e:
            logger.warning(
                f"Invite redemption failed for {invited_user_id}: {e}",
                extra={"invite_code": code, "error_type": "invite_redemption_failed"},
            )
            return None

        row = rows[0] if isinstance(rows, list) and rows else rows
        if not row:
            return None
        redemption = InviteRedemption.model_validate(row)
        if redemption.success:
            logger.info(
                f"Invite {code} redeemed by {invited_user_id}",
                extra={"inviter_id": str(redemption.inviter_id), "points": redemption.points_awarded},
            )
        else:
            logger.info(f"Invite {code} not redeemable for {invited_user_id}")
        return redemption
