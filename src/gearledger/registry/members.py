"""Membership registry: people who can borrow equipment."""

import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from ..clock import iso_now
from ..db.models import Member
from ..db.schemas import MemberCreate, MemberRole
from ..db.sqlite import Database, get_db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..lending.models import Loan

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case an email address; blank becomes None."""
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


class MemberRegistry:
    """Manages members."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize member registry.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def create_member(self, data: MemberCreate) -> Member:
        """Create a new member.

        Args:
            data: Member creation data

        Returns:
            Created member

        Raises:
            ValidationError: blank name or malformed email
            ConflictError: email already registered
        """
        name = (data.name or "").strip()
        if not name:
            raise ValidationError("Member name is required")

        raw_email = (data.email or "").strip()
        email = normalize_email(raw_email)
        if email and "@" not in email:
            raise ValidationError(f"Invalid email address '{raw_email}'")

        with self.db.get_session() as session:
            if email and self._email_taken(session, email):
                raise ConflictError(f"Email '{raw_email}' already exists")

            member = Member(
                name=name,
                email=email,
                phone=(data.phone or "").strip() or None,
                role=MemberRole(data.role).value,
                is_active=True,
            )
            session.add(member)
            try:
                session.flush()
                session.commit()
            except IntegrityError as e:
                raise ConflictError(f"Email '{raw_email}' already exists") from e
            session.refresh(member)
            session.expunge(member)

        logger.debug("Created member %s", member.id)
        return member

    def _email_taken(self, session, email: str) -> bool:
        stmt = select(Member.id).where(Member.email == email)
        return session.execute(stmt).first() is not None

    def email_exists(self, email: str) -> bool:
        """Check whether an email is already registered."""
        email = normalize_email(email)
        if not email:
            return False
        with self.db.get_session() as session:
            return self._email_taken(session, email)

    def get_member(self, member_id: str) -> Optional[Member]:
        """Get a member by ID.

        Args:
            member_id: Member ID

        Returns:
            Member or None
        """
        with self.db.get_session() as session:
            member = session.get(Member, member_id)
            if member:
                session.expunge(member)
            return member

    def get_member_by_email(self, email: str) -> Optional[Member]:
        """Get a member by email (case-insensitive)."""
        email = normalize_email(email)
        if not email:
            return None
        with self.db.get_session() as session:
            stmt = select(Member).where(Member.email == email)
            member = session.execute(stmt).scalar_one_or_none()
            if member:
                session.expunge(member)
            return member

    def get_member_by_name(self, name: str) -> Optional[Member]:
        """Get the first active member with this name (case-insensitive)."""
        with self.db.get_session() as session:
            stmt = (
                select(Member)
                .where(func.lower(Member.name) == name.strip().lower(), Member.is_active.is_(True))
                .order_by(Member.created_at)
            )
            member = session.execute(stmt).scalars().first()
            if member:
                session.expunge(member)
            return member

    def list_members(
        self,
        active_only: bool = False,
        search: Optional[str] = None,
    ) -> list[Member]:
        """List members.

        Args:
            active_only: Skip deactivated members
            search: Case-insensitive match on name or email

        Returns:
            Members ordered by name
        """
        with self.db.get_session() as session:
            stmt = select(Member).order_by(Member.name)

            if active_only:
                stmt = stmt.where(Member.is_active.is_(True))
            if search:
                pattern = f"%{search.strip()}%"
                stmt = stmt.where(or_(Member.name.ilike(pattern), Member.email.ilike(pattern)))

            members = session.execute(stmt).scalars().all()
            for m in members:
                session.expunge(m)
            return list(members)

    def get_active_loan_counts(self) -> dict[str, int]:
        """Map member ID to number of items they currently hold."""
        with self.db.get_session() as session:
            stmt = (
                select(Loan.member_id, func.count(Loan.id))
                .where(Loan.closed_at.is_(None))
                .group_by(Loan.member_id)
            )
            return {member_id: count for member_id, count in session.execute(stmt).all()}

    def deactivate_member(self, member_id: str) -> Member:
        """Soft-delete a member. Their loans are left untouched.

        Raises:
            NotFoundError: unknown member
        """
        with self.db.get_session() as session:
            member = session.get(Member, member_id)
            if member is None:
                raise NotFoundError(f"Member '{member_id}' not found")

            member.is_active = False
            member.updated_at = iso_now()
            session.commit()
            session.refresh(member)
            session.expunge(member)
            logger.info("Deactivated member %s", member_id)
            return member
