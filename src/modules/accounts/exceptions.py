"""Accounts domain exceptions.

Each one subclasses a class of the shared taxonomy in
``modules.core.exceptions`` so the API layer renders it without
module-specific handling.
"""

from __future__ import annotations

from modules.core.exceptions import Conflict, Forbidden, InvalidRequest, NotFound


class IdentityNotFound(NotFound):
    default_message = "User not found."


class EmailAlreadyRegistered(Conflict):
    code = "email_taken"
    default_message = "Email already registered."


class InvalidResourceId(InvalidRequest):
    code = "invalid_id"
    default_message = "Invalid resource id."


class InvalidAntiForgeryToken(Forbidden):
    code = "invalid_csrf_token"
    default_message = "Invalid or missing anti-forgery token."


class RoleChangeForbidden(Forbidden):
    default_message = "Only a super admin can change administrative roles."


class SelfModificationRejected(InvalidRequest):
    """An actor tried to demote or delete itself."""

    code = "self_modification"


class LastSuperAdmin(Conflict):
    code = "last_super_admin"
    default_message = "The last super admin cannot be demoted or deleted."


class IdentityHasActiveOrders(InvalidRequest):
    code = "active_orders"
    default_message = "Cannot delete a user with paid orders awaiting delivery."
