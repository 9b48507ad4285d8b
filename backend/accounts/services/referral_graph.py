"""
Read-side traversal of the sponsor forest.

Upward walks (`ancestors_of`) feed the commission engine; downward walks
(`children_index`, `genealogy`, `downline_counts`) feed the team views.
All walks keep a visited set and a depth ceiling so a corrupted chain can
never loop forever.
"""
import logging
from typing import Iterator, Optional, Tuple

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction

from core.exceptions import CyclicSponsor, SelfReferral, UserNotFound

logger = logging.getLogger(__name__)


def max_depth_ceiling() -> int:
    return int(getattr(settings, "REFERRAL_MAX_DEPTH", 20) or 20)


def _cap(depth: Optional[int]) -> int:
    ceiling = max_depth_ceiling()
    if depth is None:
        return ceiling
    try:
        depth = int(depth)
    except (TypeError, ValueError):
        return ceiling
    return max(0, min(depth, ceiling))


def ancestors_of(user, max_levels: Optional[int] = None) -> Iterator[Tuple[object, int]]:
    """
    Yield (ancestor, level) pairs walking sponsor links upward from `user`,
    level 1 being the direct sponsor. Blocked ancestors are yielded too;
    eligibility is the caller's decision.
    """
    User = get_user_model()
    limit = _cap(max_levels)
    seen = {user.pk}
    sponsor_id = user.sponsor_id
    level = 0
    while sponsor_id and level < limit:
        if sponsor_id in seen:
            logger.error("Sponsor cycle detected above user=%s at user=%s", user.pk, sponsor_id)
            return
        try:
            ancestor = User.objects.get(pk=sponsor_id)
        except User.DoesNotExist:
            return
        level += 1
        seen.add(ancestor.pk)
        yield ancestor, level
        sponsor_id = ancestor.sponsor_id


def ancestor_ids(user, max_levels: Optional[int] = None) -> list[int]:
    return [a.pk for a, _ in ancestors_of(user, max_levels)]


def would_create_cycle(user, sponsor) -> bool:
    """
    True when making `sponsor` the sponsor of `user` would put `user` among
    its own ancestors.
    """
    if sponsor is None:
        return False
    if user.pk is None:
        # unsaved users have no descendants yet
        return False
    if sponsor.pk == user.pk:
        return True
    User = get_user_model()
    seen = set()
    current = sponsor.pk
    while current and current not in seen:
        if current == user.pk:
            return True
        seen.add(current)
        current = User.objects.filter(pk=current).values_list("sponsor_id", flat=True).first()
    return False


def validate_sponsor(user, sponsor):
    if sponsor is None:
        return
    if user.pk is not None and sponsor.pk == user.pk:
        raise SelfReferral()
    if would_create_cycle(user, sponsor):
        raise CyclicSponsor(user_id=user.pk, sponsor_id=sponsor.pk)


@transaction.atomic
def set_sponsor(user_id, sponsor_id):
    """
    Reassign (or clear, with sponsor_id=None) a user's sponsor, refusing any
    assignment that would close a cycle.
    """
    User = get_user_model()
    try:
        user = User.objects.select_for_update().get(pk=user_id)
    except User.DoesNotExist:
        raise UserNotFound(user_id=user_id)
    sponsor = None
    if sponsor_id is not None:
        try:
            sponsor = User.objects.get(pk=sponsor_id)
        except User.DoesNotExist:
            raise UserNotFound("Sponsor not found.", user_id=sponsor_id)
    validate_sponsor(user, sponsor)
    previous = user.sponsor_id
    user.sponsor = sponsor
    user.save(update_fields=["sponsor"])
    logger.info("Sponsor of user=%s changed %s -> %s", user.pk, previous, sponsor_id)
    return user


def children_index(root, max_depth: Optional[int] = None) -> dict:
    """
    Map sponsor id -> list of direct referrals for the subtree under `root`,
    `max_depth` levels deep. One query per level.
    """
    User = get_user_model()
    depth = _cap(max_depth)
    index: dict = {}
    seen = {root.pk}
    frontier = [root.pk]
    for _ in range(depth):
        if not frontier:
            break
        rows = list(
            User.objects.filter(sponsor_id__in=frontier)
            .only("id", "username", "full_name", "date_joined", "sponsor_id", "status")
            .order_by("date_joined", "id")
        )
        frontier = []
        for u in rows:
            if u.pk in seen:
                continue
            seen.add(u.pk)
            index.setdefault(u.sponsor_id, []).append(u)
            frontier.append(u.pk)
    return index


def _node(u, level: int) -> dict:
    return {
        "user": {
            "id": u.pk,
            "username": u.username,
            "full_name": u.full_name or "",
            "status": u.status,
            "created_at": u.date_joined,
        },
        "level": level,
        "children": [],
    }


def genealogy(root, max_depth: Optional[int] = None) -> dict:
    if max_depth is None:
        max_depth = getattr(settings, "GENEALOGY_DEFAULT_DEPTH", 6)
    index = children_index(root, max_depth)

    def build(u, level):
        node = _node(u, level)
        node["children"] = [build(c, level + 1) for c in index.get(u.pk, [])]
        return node

    return build(root, 0)


def downline_counts(root, max_depth: Optional[int] = None) -> dict:
    User = get_user_model()
    depth = _cap(max_depth)
    levels = []
    seen = {root.pk}
    frontier = [root.pk]
    for level in range(1, depth + 1):
        if not frontier:
            break
        ids = [i for i in User.objects.filter(sponsor_id__in=frontier).values_list("id", flat=True) if i not in seen]
        if not ids:
            break
        seen.update(ids)
        levels.append({"level": level, "count": len(ids)})
        frontier = ids
    return {
        "direct": levels[0]["count"] if levels else 0,
        "total": sum(x["count"] for x in levels),
        "levels": levels,
    }
