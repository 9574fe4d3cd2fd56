# Overview: Current-user session over Flask's signed cookie session.

"""
The session persists only the current user's id, under one namespaced key.
Each request re-resolves the user from the synced snapshot, so a deleted
user loses access on their next request.
"""

from __future__ import annotations

from flask import current_app, session

from .auth_service import public_user


def _key() -> str:
    return current_app.config.get("SESSION_STORAGE_KEY", "pos-ultimate-storage")


def set_current_user(user: dict) -> None:
    session[_key()] = {"current_user_id": user["id"]}
    session.permanent = True


def clear_current_user() -> None:
    session.pop(_key(), None)


def get_current_user(store) -> dict | None:
    state = session.get(_key()) or {}
    user_id = state.get("current_user_id")
    if not user_id:
        return None
    user = store.get_user(user_id)
    if user is None:
        clear_current_user()
        return None
    return public_user(user)
