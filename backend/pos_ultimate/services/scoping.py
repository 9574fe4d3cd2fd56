# Overview: Role-scoped views over the synced collections.

"""
SUPER_ADMIN sees every location. ADMIN sees and manages their own location.
SELLER sees their location's catalogue and notifications, their own sales
and the tasks assigned to them.
"""

from __future__ import annotations

from ..constants import ROLE_ADMIN, ROLE_SELLER, ROLE_SUPER_ADMIN


def is_super_admin(actor: dict) -> bool:
    return actor.get("role") == ROLE_SUPER_ADMIN


def is_admin(actor: dict) -> bool:
    return actor.get("role") in (ROLE_SUPER_ADMIN, ROLE_ADMIN)


def in_scope(actor: dict, local_id: str | None) -> bool:
    return is_super_admin(actor) or (local_id is not None and actor.get("local_id") == local_id)


def can_manage_local(actor: dict, local_id: str | None) -> bool:
    """Admin-level write access to a location's records."""
    return is_super_admin(actor) or (actor.get("role") == ROLE_ADMIN and in_scope(actor, local_id))


def can_manage_user(actor: dict, role: str | None, local_id: str | None) -> bool:
    if is_super_admin(actor):
        return True
    return actor.get("role") == ROLE_ADMIN and role != ROLE_SUPER_ADMIN and in_scope(actor, local_id)


def _newest_first(docs, key: str) -> list[dict]:
    return sorted(docs, key=lambda d: d.get(key) or "", reverse=True)


def visible_users(actor: dict, users) -> list[dict]:
    if is_super_admin(actor):
        return list(users)
    if actor.get("role") == ROLE_ADMIN:
        return [u for u in users if u.get("role") != ROLE_SUPER_ADMIN and in_scope(actor, u.get("local_id"))]
    return [u for u in users if u.get("id") == actor.get("id")]


def visible_locales(actor: dict, locales) -> list[dict]:
    return [loc for loc in locales if in_scope(actor, loc.get("id"))]


def visible_products(actor: dict, products) -> list[dict]:
    return [p for p in products if in_scope(actor, p.get("local_id"))]


def visible_sales(actor: dict, sales) -> list[dict]:
    if actor.get("role") == ROLE_SELLER:
        scoped = [s for s in sales if s.get("seller_id") == actor.get("id")]
    else:
        scoped = [s for s in sales if in_scope(actor, s.get("local_id"))]
    return _newest_first(scoped, "date")


def visible_tasks(actor: dict, tasks) -> list[dict]:
    scoped = [t for t in tasks if in_scope(actor, t.get("local_id"))]
    if not is_admin(actor):
        scoped = [t for t in scoped if t.get("assigned_to_id") == actor.get("id")]
    return _newest_first(scoped, "created_at")


def visible_notifications(actor: dict, notifications) -> list[dict]:
    return [n for n in notifications if in_scope(actor, n.get("local_id"))]


def assignable_sellers(actor: dict, users) -> list[dict]:
    return [
        u for u in users
        if u.get("role") == ROLE_SELLER and in_scope(actor, u.get("local_id"))
    ]
