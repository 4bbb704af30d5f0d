from tortoise import fields
from tortoise.models import Model
import uuid

from .constants import Role


class User(Model):
    """User account stored in the database."""

    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    username = fields.CharField(max_length=50, unique=True, index=True)
    email = fields.CharField(max_length=254, unique=True, index=True)
    password_hash = fields.CharField(max_length=128)
    display_name = fields.CharField(max_length=100, null=True)
    avatar_url = fields.CharField(max_length=500, null=True)
    role = fields.CharEnumField(Role, default=Role.PLAYER)
    # Click counter; only ever changed through an atomic F("score") + 1 update
    score = fields.IntField(default=0, index=True)
    # Soft moderation flags. Blocked or deleted users can neither log in nor connect.
    is_blocked = fields.BooleanField(default=False)
    is_deleted = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "users"
