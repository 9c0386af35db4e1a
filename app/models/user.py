from enum import Enum
from tortoise import fields, models
import uuid


class UserRole(str, Enum):
    ADMIN = "admin"
    GENERAL_MANAGER = "general_manager"
    MANAGER = "manager"  # Scoped to the areas assigned through user_areas


class Profile(models.Model):
    # Same id as the identity provider's user
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    email = fields.CharField(max_length=255, unique=True)
    name = fields.CharField(max_length=255)
    role = fields.CharEnumField(UserRole, default=UserRole.MANAGER)
    department = fields.CharField(max_length=255, null=True)
    phone = fields.CharField(max_length=64, null=True)
    avatar_url = fields.CharField(max_length=1024, null=True)
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "profiles"
        indexes = [
            ("role",),
            ("is_active",),
        ]


class UserArea(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    user = fields.ForeignKeyField("models.Profile", related_name="area_links", on_delete=fields.CASCADE)
    area = fields.ForeignKeyField("models.Area", related_name="user_links", on_delete=fields.CASCADE)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "user_areas"
        unique_together = (("user", "area"),)
