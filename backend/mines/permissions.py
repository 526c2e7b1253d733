# mines/permissions.py
from django.conf import settings
from rest_framework.permissions import BasePermission


class PlayerAccess(BasePermission):
    """
    Open by default. With MINES_REQUIRE_AUTH on, the caller must be logged in
    and may only act on the player id matching their username.
    """

    message = "You can only act on your own player id."

    def has_permission(self, request, view):
        if not getattr(settings, "MINES_REQUIRE_AUTH", False):
            return True
        user = request.user
        if not (user and user.is_authenticated):
            return False
        player_id = view.kwargs.get("player_id")
        return player_id is None or user.get_username() == player_id
