"""Owner settings: autonomy preferences and subscription tier."""

import logging
from typing import Any, Dict, Optional

from ..gate.autonomy import AutonomySettings, SubscriptionTier, parse_tier
from .repository import Repository

logger = logging.getLogger(__name__)


class SettingsRepository(Repository):
    TABLE_NAME = "agent_autonomy_settings"

    async def get_autonomy(self, user_id: str) -> AutonomySettings:
        row = await self._fetch_one("user_id = $1", (user_id,))
        return AutonomySettings.from_row(user_id, row)

    async def save_autonomy(self, settings: AutonomySettings) -> None:
        await self.db.execute(
            "INSERT INTO agent_autonomy_settings (user_id, preset, category_overrides) "
            "VALUES ($1, $2, $3) ON CONFLICT (user_id) DO UPDATE SET "
            "preset = EXCLUDED.preset, category_overrides = EXCLUDED.category_overrides, updated_at = NOW()",
            settings.user_id, settings.preset.value, settings.category_overrides,
        )

    async def get_tier(self, user_id: str) -> SubscriptionTier:
        tier = await self.db.fetchval("SELECT subscription_tier FROM profiles WHERE id = $1", user_id)
        return parse_tier(tier)

    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(
            "SELECT id, full_name, email, subscription_tier FROM profiles WHERE id = $1", user_id,
        )
        return dict(row) if row else None
