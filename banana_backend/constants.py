from enum import Enum


class Role(str, Enum):
    PLAYER = "player"
    ADMIN = "admin"


# Inbound events (client -> server)
EVENT_REQUEST_INITIAL_RANKS = "request_initial_ranks"
EVENT_BANANA_CLICK = "banana_click"

# Outbound events (server -> client)
EVENT_RANK_UPDATE = "rank_update"
EVENT_PLAYER_SCORE_UPDATE = "player_score_update"
EVENT_USER_STATUS_UPDATE = "user_status_update"
EVENT_FORCE_LOGOUT = "force_logout"

STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"

# Hard ceiling on leaderboard size, regardless of configuration.
MAX_RANK_LIMIT = 100

# WebSocket close codes
CLOSE_MISSING_TOKEN = 4000
CLOSE_INVALID_TOKEN = 4001
CLOSE_ACCOUNT_UNAVAILABLE = 4002
CLOSE_FORCED_LOGOUT = 4003
CLOSE_GOING_AWAY = 1001

BLOCKED_MESSAGE = "Your account has been blocked by an administrator."
DELETED_MESSAGE = "Your account has been deleted by an administrator."

__all__ = [
    "Role",
    "EVENT_REQUEST_INITIAL_RANKS",
    "EVENT_BANANA_CLICK",
    "EVENT_RANK_UPDATE",
    "EVENT_PLAYER_SCORE_UPDATE",
    "EVENT_USER_STATUS_UPDATE",
    "EVENT_FORCE_LOGOUT",
    "STATUS_ONLINE",
    "STATUS_OFFLINE",
    "MAX_RANK_LIMIT",
    "CLOSE_MISSING_TOKEN",
    "CLOSE_INVALID_TOKEN",
    "CLOSE_ACCOUNT_UNAVAILABLE",
    "CLOSE_FORCED_LOGOUT",
    "CLOSE_GOING_AWAY",
    "BLOCKED_MESSAGE",
    "DELETED_MESSAGE",
]
