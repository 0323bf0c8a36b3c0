"""
Authentication & role gating.

The backend is authoritative for roles: every gate re-fetches the profile
and overwrites the session cache before deciding. Failures come back as
``Err``; ``ErrorKind.AUTH`` means "send the user to role selection".
"""

import logging

from drivers24.exceptions import ValidationFailed
from drivers24.schemas import Role
from drivers24.services.api_client import BackendClient, Err, ErrorKind, Ok, Result
from drivers24.services.identity import Identity
from drivers24.services.session import Session
from drivers24.services.validators import is_blank

logger = logging.getLogger(__name__)

ROLE_REQUIRED = "Please select a role and enter your city"
NEEDS_ROLE = "Please choose how you want to use Drivers24"
WRONG_ROLE = "This section is not available for your account"
NO_PENDING_REGISTRATION = "No pending driver registration found"
NO_IDENTITY_TOKEN = "Failed to get authentication token"
EMAIL_MISMATCH = "Email mismatch. Please sign in with the email you used for registration."

SELECTABLE_ROLES = (Role.USER, Role.DRIVER)


async def resolve_user(client: BackendClient, session: Session, clerk_id: str) -> Result:
    """Fresh profile for *clerk_id*; ``Err(AUTH)`` when no role has been chosen yet."""
    result = await client.get_profile(clerk_id)
    if isinstance(result, Err):
        if result.kind == ErrorKind.TRANSPORT:
            return result
        logger.info("Profile lookup failed for %s: %s", clerk_id, result.reason)
        return Err(NEEDS_ROLE, ErrorKind.AUTH)

    payload = result.value
    if not payload.user.role or not payload.token:
        return Err(NEEDS_ROLE, ErrorKind.AUTH)

    await session.set_auth(payload.token, payload.user)
    return Ok(payload.user)


async def require_role(client: BackendClient, session: Session, clerk_id: str, *roles: Role) -> Result:
    result = await resolve_user(client, session, clerk_id)
    if isinstance(result, Ok) and result.value.role not in roles:
        logger.warning("Role %s denied access (needs %s)", result.value.role, roles)
        return Err(WRONG_ROLE, ErrorKind.AUTH)
    return result


async def select_role(
    client: BackendClient, session: Session, clerk_id: str, role: Role | str | None, city: str | None,
) -> Result:
    """Assign the one-time role; raises ``ValidationFailed`` before any request on bad input."""
    if role not in SELECTABLE_ROLES or is_blank(city):
        raise ValidationFailed(ROLE_REQUIRED)

    result = await client.select_role(clerk_id, Role(role), city.strip())
    if isinstance(result, Ok):
        if result.value.token:
            await session.set_auth(result.value.token, result.value.user)
        logger.info("Role selected: clerk_id=%s role=%s", clerk_id, role)
    return result


async def complete_pending_registration(
    client: BackendClient, session: Session, identity: Identity | None,
) -> Result:
    """
    Convert the session's pending guest registration into a driver profile.

    The pending email must match the signed-in identity exactly. A mismatch or
    a backend rejection consumes the pending record; a transport failure keeps
    it so the user can retry.
    """
    email = session.pending_driver_email
    if not email:
        return Err(NO_PENDING_REGISTRATION, ErrorKind.AUTH)

    if identity is None or not identity.token:
        return Err(NO_IDENTITY_TOKEN, ErrorKind.TRANSPORT)

    if identity.email != email:
        logger.warning("Pending registration email mismatch for chat %s", session.chat_id)
        await session.clear_pending_email()
        return Err(EMAIL_MISMATCH, ErrorKind.AUTH)

    result = await client.complete_driver_registration(identity.token, email)
    if isinstance(result, Ok):
        if result.value.token:
            await session.set_auth(result.value.token, result.value.user)
        await session.clear_pending_email()
        logger.info("Driver registration completed: email=%s", email)
    elif result.kind != ErrorKind.TRANSPORT:
        await session.clear_pending_email()
    return result
