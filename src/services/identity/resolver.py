"""
Guest identity resolution for checkouts.

Every order must be attributed to a persisted user. Logged-in customers keep
their own id. Everyone else, including a store owner buying from their own
store, is mapped to a guest user: an existing user when the e-mail is
already known, otherwise a freshly created account with a password nobody
knows. The same e-mail always resolves to the same user.
"""

import time
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_settings
from src.core.exceptions import IdentityResolutionError
from src.core.logging import get_logger
from src.core.security import (
    LOWERCASE_ALPHANUMERIC,
    generate_random_code,
    generate_unusable_password_hash,
)
from src.database.models.store import Store
from src.database.models.user import User, UserRole
from src.schemas.checkout import CustomerForm
from src.services.stores.repository import StoreRepository

logger = get_logger(__name__)

GUEST_EMAIL_SUFFIX_LENGTH = 6


def guest_display_name(store: Optional[Store]) -> str:
    """Display name used when the customer left the form empty."""
    if store is None:
        return "Guest"
    return f"Guest of {store.name}"


def synthesize_guest_email(store: Store, domain: Optional[str] = None) -> str:
    """
    Build a unique placeholder e-mail for a customer who gave none.

    Format: ``guest+<store>-<timestamp ms>-<random>@<domain>``.
    """
    domain = domain or get_settings().guest_email_domain
    store_key = (store.slug or str(store.id)).lower()
    timestamp = int(time.time() * 1000)
    suffix = generate_random_code(GUEST_EMAIL_SUFFIX_LENGTH, LOWERCASE_ALPHANUMERIC)
    return f"guest+{store_key}-{timestamp}-{suffix}@{domain}"


class GuestIdentityResolver:
    """Maps a checkout to the user its order is attributed to."""

    def __init__(self, guest_email_domain: Optional[str] = None):
        self.guest_email_domain = guest_email_domain or get_settings().guest_email_domain

    async def resolve_checkout_identity(
        self,
        session: AsyncSession,
        logged_in_user_id: Optional[uuid.UUID],
        customer_form: Optional[CustomerForm] = None,
        store_id: Optional[uuid.UUID] = None,
        store_slug: Optional[str] = None,
    ) -> uuid.UUID:
        """
        Resolve the user id an order should be attributed to.

        Args:
            session: Session of a short transaction, never the stock transaction
            logged_in_user_id: Authenticated user, if any
            customer_form: Customer details from the checkout form
            store_id: Store the cart belongs to
            store_slug: Store slug, used when the id is unknown

        Returns:
            User id

        Raises:
            NotFoundError: If the named store does not exist
            IdentityResolutionError: If no identity can be established
        """
        store = await StoreRepository(session).resolve(store_id, store_slug)

        if logged_in_user_id is not None:
            if store is None or not store.is_owned_by(logged_in_user_id):
                return logged_in_user_id
            logger.info(
                "Store owner checking out from own store, resolving guest identity",
                user_id=str(logged_in_user_id),
                store_id=str(store.id),
            )

        form = customer_form or CustomerForm()

        if form.email:
            existing = await self._find_by_email(session, form.email)
            if existing is not None and not (store and store.is_owned_by(existing.id)):
                if form.name and existing.name != form.name:
                    existing.name = form.name
                    await session.flush()
                logger.info(
                    "Reusing existing user for checkout",
                    user_id=str(existing.id),
                    is_guest=existing.is_guest,
                )
                return existing.id

            if existing is None:
                user = await self._create_guest(
                    session,
                    email=form.email,
                    name=form.name or guest_display_name(store),
                    form=form,
                )
                return user.id

            logger.info(
                "Checkout e-mail belongs to the store owner, using placeholder identity",
                store_id=str(store.id),
            )

        if store is None:
            raise IdentityResolutionError(
                "Cannot attribute checkout without a user, an e-mail or a store",
                has_form_data=form.has_data,
            )

        user = await self._create_guest(
            session,
            email=synthesize_guest_email(store, self.guest_email_domain),
            name=form.name or guest_display_name(store),
            form=form,
        )
        return user.id

    async def _find_by_email(self, session: AsyncSession, email: str) -> Optional[User]:
        result = await session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def _create_guest(
        self,
        session: AsyncSession,
        email: str,
        name: str,
        form: CustomerForm,
    ) -> User:
        """
        Insert a guest user.

        A concurrent checkout may insert the same e-mail first; the unique
        constraint then fails the savepoint and the winner's row is reused.
        """
        user = User(
            id=uuid.uuid4(),
            email=email.lower(),
            name=name,
            password_hash=generate_unusable_password_hash(),
            role=UserRole.CUSTOMER,
            is_guest=True,
            phone=form.phone,
            address=form.address,
        )
        try:
            async with session.begin_nested():
                session.add(user)
                await session.flush()
        except IntegrityError as e:
            existing = await self._find_by_email(session, email)
            if existing is None:
                logger.error(
                    "Guest user creation failed",
                    email=email,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise IdentityResolutionError(
                    "Could not create guest user", email=email
                ) from e
            logger.info(
                "Guest user created concurrently, reusing",
                user_id=str(existing.id),
            )
            return existing

        logger.info(
            "Guest user created",
            user_id=str(user.id),
            synthesized_email=email.endswith("@" + self.guest_email_domain),
        )
        return user
