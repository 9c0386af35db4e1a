import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from app.core.config import USER_EMAIL_DOMAIN
from app.core.exceptions import AreaNotFound, UserNotFound, ValidationError
from app.models.inventory import Area
from app.models.user import Profile, UserArea, UserRole
from app.schemas.user import AreaRef, UserCreate, UserResponse, UserUpdate

log = logging.getLogger("user_service")


def user_response(profile: Profile, areas: Optional[List[AreaRef]] = None) -> UserResponse:
    return UserResponse.model_validate(profile).model_copy(update={"areas": areas or []})


async def _areas_for(user_ids: List[UUID]) -> Dict[UUID, List[AreaRef]]:
    """Assigned areas per user, sorted by name."""
    if not user_ids:
        return {}
    links = await UserArea.filter(user_id__in=user_ids).select_related("area")
    areas: Dict[UUID, List[AreaRef]] = defaultdict(list)
    for link in links:
        areas[link.user_id].append(AreaRef(id=link.area.id, name=link.area.name))
    for refs in areas.values():
        refs.sort(key=lambda a: a.name)
    return areas


async def _require_user(user_id: UUID) -> Profile:
    profile = await Profile.get_or_none(id=user_id)
    if not profile:
        raise UserNotFound(user_id)
    return profile


def _check_email(email: str) -> str:
    email = email.strip().lower()
    if USER_EMAIL_DOMAIN and not email.endswith(USER_EMAIL_DOMAIN.lower()):
        raise ValidationError(f"Email must be from the {USER_EMAIL_DOMAIN} domain.", details={"email": email})
    return email


# ----------- Profiles -----------

async def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[UserResponse]:
    """Newest first, each with its assigned areas."""
    qs = Profile.all()
    if role:
        qs = qs.filter(role=role)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if search:
        term = search.strip()
        qs = qs.filter(Q(name__icontains=term) | Q(email__icontains=term) | Q(department__icontains=term))

    profiles = await qs.order_by("-created_at", "-id")
    areas = await _areas_for([p.id for p in profiles])
    return [user_response(p, areas.get(p.id)) for p in profiles]


async def get_user(user_id: UUID) -> UserResponse:
    profile = await _require_user(user_id)
    areas = await _areas_for([profile.id])
    return user_response(profile, areas.get(profile.id))


async def create_user(data: UserCreate) -> UserResponse:
    email = _check_email(data.email)
    if await Profile.filter(email=email).exists():
        raise ValidationError("A user with this email already exists.", details={"email": email})

    fields = data.model_dump(exclude={"id", "email", "area_ids"})
    if data.id is not None:
        fields["id"] = data.id
    profile = await Profile.create(email=email, **fields)
    log.info(f"User '{profile.email}' created ({profile.id}) as {profile.role.value}.")

    if data.area_ids:
        return await assign_areas(profile.id, data.area_ids)
    return user_response(profile)


async def update_user(user_id: UUID, data: UserUpdate) -> UserResponse:
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is None:
        raise ValidationError("User name cannot be empty.")
    await _require_user(user_id)
    if changes:
        await Profile.filter(id=user_id).update(**changes)
    return await get_user(user_id)


async def update_user_role(user_id: UUID, role: UserRole) -> UserResponse:
    updated = await Profile.filter(id=user_id).update(role=role)
    if not updated:
        raise UserNotFound(user_id)
    log.info(f"User {user_id} is now {role.value}.")
    return await get_user(user_id)


async def set_user_active(user_id: UUID, is_active: bool) -> UserResponse:
    """Soft delete and restore. Ledger entries keep pointing at the profile either way."""
    updated = await Profile.filter(id=user_id).update(is_active=is_active)
    if not updated:
        raise UserNotFound(user_id)
    log.info(f"User {user_id} {'activated' if is_active else 'deactivated'}.")
    return await get_user(user_id)


async def deactivate_user(user_id: UUID) -> UserResponse:
    return await set_user_active(user_id, False)


# ----------- Area assignments -----------

async def assign_areas(user_id: UUID, area_ids: Iterable[UUID]) -> UserResponse:
    """Replaces the user's area assignments with exactly ``area_ids``."""
    await _require_user(user_id)
    wanted = list(dict.fromkeys(area_ids))
    if wanted:
        found = set(await Area.filter(id__in=wanted).values_list("id", flat=True))
        missing = [a for a in wanted if a not in found]
        if missing:
            raise AreaNotFound(missing[0])

    async with in_transaction() as conn:
        await UserArea.filter(user_id=user_id).using_db(conn).delete()
        for area_id in wanted:
            await UserArea.create(user_id=user_id, area_id=area_id, using_db=conn)

    log.info(f"User {user_id} assigned to {len(wanted)} area(s).")
    return await get_user(user_id)
