"""Leaderboard snapshots computed from the user store."""
from __future__ import annotations

import asyncio
from typing import List, Optional

from .constants import MAX_RANK_LIMIT
from .errors import StoreUnavailable
from .logging_config import get_logger
from .schemas import RankEntry
from .user_store import UserStore

logger = get_logger(__name__)


class LeaderboardAggregator:
    """Builds the ranked top-N list on demand. Read only."""

    def __init__(self, store: UserStore, default_limit: int = MAX_RANK_LIMIT, timeout: float = 5.0):
        self.store = store
        self.default_limit = default_limit
        self.timeout = timeout

    async def compute_top_ranks(self, limit: Optional[int] = None) -> List[RankEntry]:
        """Return at most *limit* entries, highest score first.

        A failing store yields an empty list; the failure is logged and never
        raised, so a broken leaderboard push cannot take down the caller.
        """
        limit = self.default_limit if limit is None else limit
        limit = max(0, min(limit, MAX_RANK_LIMIT))
        if limit == 0:
            return []
        try:
            users = await asyncio.wait_for(self.store.list_active_sorted_by_score_desc(limit), self.timeout)
        except (StoreUnavailable, asyncio.TimeoutError) as exc:
            logger.error("error fetching ranks", error=repr(exc))
            return []
        except Exception:
            logger.exception("error fetching ranks")
            return []

        # Stable sort keeps the store's order among equal scores.
        active = sorted((u for u in users if u.available), key=lambda u: u.score, reverse=True)
        return [
            RankEntry(
                user_id=u.id,
                username=u.username,
                display_name=u.display_name,
                avatar_ref=u.avatar_url,
                score=u.score,
            )
            for u in active[:limit]
        ]


__all__ = ["LeaderboardAggregator"]
