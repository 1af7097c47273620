"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
toys, messages, exchange requests, favorites, follows, toy history,
wishes, reports, community metrics). Repositories return SQLModel
objects and perform commits/refreshes where appropriate.
"""

from typing import List, Optional
from sqlmodel import Session, select, col, or_, and_
from sqlalchemy import func
from datetime import datetime, timezone
from . import models
from .utils.filters import ToyFilters


def _newest_first(stmt, model):
    return stmt.order_by(col(model.created_at).desc(), col(model.id).desc())


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get_by_email(self, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.User]:
        return self.session.exec(select(models.User).order_by(col(models.User.id))).all()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.User)).one()

    def top_by(self, column: str, limit: int) -> List[models.User]:
        """Return up to `limit` users ordered by `column` descending.

        Ties are broken by the older account first so ranks are stable.
        """
        order_col = getattr(models.User, column)
        stmt = (
            select(models.User)
            .order_by(col(order_col).desc(), col(models.User.created_at), col(models.User.id))
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def delete(self, user: models.User) -> None:
        self.session.delete(user)
        self.session.commit()


class ToyRepository:
    """CRUD and search operations for `Toy` listings."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, toy: models.Toy) -> models.Toy:
        self.session.add(toy)
        self.session.commit()
        self.session.refresh(toy)
        return toy

    def save(self, toy: models.Toy) -> models.Toy:
        self.session.add(toy)
        self.session.commit()
        self.session.refresh(toy)
        return toy

    def get(self, toy_id: int) -> Optional[models.Toy]:
        return self.session.get(models.Toy, toy_id)

    def list_by_user(self, user_id: int) -> List[models.Toy]:
        stmt = select(models.Toy).where(models.Toy.user_id == user_id)
        return self.session.exec(_newest_first(stmt, models.Toy)).all()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Toy)).one()

    def search(self, filters: Optional[ToyFilters] = None) -> List[models.Toy]:
        """Return toys matching the SQL-expressible part of `filters`.

        Each non-empty list becomes an `IN` predicate and predicates are
        ANDed together. Tags, search text and distance are not applied
        here; callers post-filter the returned rows.
        """
        stmt = select(models.Toy)
        if filters is not None:
            if filters.locations:
                stmt = stmt.where(col(models.Toy.location).in_(filters.locations))
            if filters.age_ranges:
                stmt = stmt.where(col(models.Toy.age_range).in_(filters.age_ranges))
            if filters.conditions:
                stmt = stmt.where(col(models.Toy.condition).in_(filters.conditions))
            if filters.categories:
                stmt = stmt.where(col(models.Toy.category).in_(filters.categories))
            if filters.statuses:
                stmt = stmt.where(col(models.Toy.status).in_(filters.statuses))
            if filters.is_available is not None:
                stmt = stmt.where(models.Toy.is_available == filters.is_available)
            if filters.user_id is not None:
                stmt = stmt.where(models.Toy.user_id == filters.user_id)
        return self.session.exec(_newest_first(stmt, models.Toy)).all()

    def delete(self, toy: models.Toy) -> None:
        """Delete a toy together with its favorites, requests, messages and history."""
        for model in (models.Favorite, models.ToyRequest, models.Message, models.ToyHistory):
            for row in self.session.exec(select(model).where(model.toy_id == toy.id)).all():
                self.session.delete(row)
        for offer in self.session.exec(select(models.WishOffer).where(models.WishOffer.toy_id == toy.id)).all():
            offer.toy_id = None
            self.session.add(offer)
        self.session.delete(toy)
        self.session.commit()


class MessageRepository:
    """Persistence for direct messages and conversations."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, message: models.Message) -> models.Message:
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def get(self, message_id: int) -> Optional[models.Message]:
        return self.session.get(models.Message, message_id)

    def save(self, message: models.Message) -> models.Message:
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_for_user(self, user_id: int) -> List[models.Message]:
        """All messages sent or received by `user_id`, newest first."""
        stmt = select(models.Message).where(
            or_(models.Message.sender_id == user_id, models.Message.receiver_id == user_id)
        )
        return self.session.exec(_newest_first(stmt, models.Message)).all()

    def _between(self, user_a: int, user_b: int):
        return or_(
            and_(models.Message.sender_id == user_a, models.Message.receiver_id == user_b),
            and_(models.Message.sender_id == user_b, models.Message.receiver_id == user_a),
        )

    def conversation(self, user_a: int, user_b: int) -> List[models.Message]:
        """Messages exchanged between two users, oldest first."""
        stmt = select(models.Message).where(self._between(user_a, user_b)).order_by(
            col(models.Message.created_at), col(models.Message.id)
        )
        return self.session.exec(stmt).all()

    def count_unread(self, user_id: int) -> int:
        stmt = select(func.count()).select_from(models.Message).where(
            models.Message.receiver_id == user_id, models.Message.read == False  # noqa: E712
        )
        return self.session.exec(stmt).one()

    def delete(self, message: models.Message) -> None:
        self.session.delete(message)
        self.session.commit()

    def delete_conversation(self, user_a: int, user_b: int) -> int:
        rows = self.session.exec(select(models.Message).where(self._between(user_a, user_b))).all()
        for row in rows:
            self.session.delete(row)
        self.session.commit()
        return len(rows)


class ToyRequestRepository:
    """Persistence for exchange requests."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, request: models.ToyRequest) -> models.ToyRequest:
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request

    def get(self, request_id: int) -> Optional[models.ToyRequest]:
        return self.session.get(models.ToyRequest, request_id)

    def save(self, request: models.ToyRequest) -> models.ToyRequest:
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request

    def list_by_toy(self, toy_id: int) -> List[models.ToyRequest]:
        stmt = select(models.ToyRequest).where(models.ToyRequest.toy_id == toy_id)
        return self.session.exec(_newest_first(stmt, models.ToyRequest)).all()

    def list_by_requester(self, requester_id: int) -> List[models.ToyRequest]:
        stmt = select(models.ToyRequest).where(models.ToyRequest.requester_id == requester_id)
        return self.session.exec(_newest_first(stmt, models.ToyRequest)).all()

    def list_by_owner(self, owner_id: int) -> List[models.ToyRequest]:
        stmt = select(models.ToyRequest).where(models.ToyRequest.owner_id == owner_id)
        return self.session.exec(_newest_first(stmt, models.ToyRequest)).all()

    def has_pending(self, toy_id: int, requester_id: int) -> bool:
        stmt = select(models.ToyRequest.id).where(
            models.ToyRequest.toy_id == toy_id,
            models.ToyRequest.requester_id == requester_id,
            models.ToyRequest.status == "pending",
        )
        return self.session.exec(stmt).first() is not None

    def count_by_status(self, status: str) -> int:
        stmt = select(func.count()).select_from(models.ToyRequest).where(models.ToyRequest.status == status)
        return self.session.exec(stmt).one()


class FavoriteRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_user_and_toy(self, user_id: int, toy_id: int) -> Optional[models.Favorite]:
        stmt = select(models.Favorite).where(models.Favorite.user_id == user_id, models.Favorite.toy_id == toy_id)
        return self.session.exec(stmt).first()

    def list_by_user(self, user_id: int) -> List[models.Favorite]:
        stmt = select(models.Favorite).where(models.Favorite.user_id == user_id)
        return self.session.exec(_newest_first(stmt, models.Favorite)).all()

    def create(self, favorite: models.Favorite) -> models.Favorite:
        self.session.add(favorite)
        self.session.commit()
        self.session.refresh(favorite)
        return favorite

    def delete(self, favorite: models.Favorite) -> None:
        self.session.delete(favorite)
        self.session.commit()


class FollowRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, follower_id: int, following_id: int) -> Optional[models.Follow]:
        stmt = select(models.Follow).where(
            models.Follow.follower_id == follower_id, models.Follow.following_id == following_id
        )
        return self.session.exec(stmt).first()

    def create(self, follow: models.Follow) -> models.Follow:
        self.session.add(follow)
        self.session.commit()
        self.session.refresh(follow)
        return follow

    def delete(self, follow: models.Follow) -> None:
        self.session.delete(follow)
        self.session.commit()

    def followers_of(self, user_id: int) -> List[models.Follow]:
        stmt = select(models.Follow).where(models.Follow.following_id == user_id)
        return self.session.exec(_newest_first(stmt, models.Follow)).all()

    def followed_by(self, user_id: int) -> List[models.Follow]:
        stmt = select(models.Follow).where(models.Follow.follower_id == user_id)
        return self.session.exec(_newest_first(stmt, models.Follow)).all()


class ToyHistoryRepository:
    """Persistence for a toy's chain of hand-overs."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, entry: models.ToyHistory) -> models.ToyHistory:
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def get(self, entry_id: int) -> Optional[models.ToyHistory]:
        return self.session.get(models.ToyHistory, entry_id)

    def save(self, entry: models.ToyHistory) -> models.ToyHistory:
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def list_by_toy(self, toy_id: int) -> List[models.ToyHistory]:
        """Hand-overs of `toy_id`, oldest first."""
        stmt = select(models.ToyHistory).where(models.ToyHistory.toy_id == toy_id).order_by(
            col(models.ToyHistory.transfer_date), col(models.ToyHistory.id)
        )
        return self.session.exec(stmt).all()


class WishRepository:
    """CRUD and search operations for `Wish` records and their offers."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, wish: models.Wish) -> models.Wish:
        self.session.add(wish)
        self.session.commit()
        self.session.refresh(wish)
        return wish

    def save(self, wish: models.Wish) -> models.Wish:
        wish.updated_at = datetime.now(timezone.utc)
        self.session.add(wish)
        self.session.commit()
        self.session.refresh(wish)
        return wish

    def get(self, wish_id: int) -> Optional[models.Wish]:
        return self.session.get(models.Wish, wish_id)

    def list_by_user(self, user_id: int) -> List[models.Wish]:
        stmt = select(models.Wish).where(models.Wish.user_id == user_id)
        return self.session.exec(_newest_first(stmt, models.Wish)).all()

    def search(self, filters: ToyFilters, public_only: bool = True) -> List[models.Wish]:
        """SQL part of a wish search; status defaults to `active`."""
        stmt = select(models.Wish)
        if public_only:
            stmt = stmt.where(models.Wish.is_public == True)  # noqa: E712
        if filters.locations:
            stmt = stmt.where(col(models.Wish.location).in_(filters.locations))
        if filters.age_ranges:
            stmt = stmt.where(col(models.Wish.age_range).in_(filters.age_ranges))
        stmt = stmt.where(col(models.Wish.status).in_(filters.statuses or ["active"]))
        if filters.user_id is not None:
            stmt = stmt.where(models.Wish.user_id == filters.user_id)
        return self.session.exec(_newest_first(stmt, models.Wish)).all()

    def delete(self, wish: models.Wish) -> None:
        for offer in self.session.exec(select(models.WishOffer).where(models.WishOffer.wish_id == wish.id)).all():
            self.session.delete(offer)
        self.session.delete(wish)
        self.session.commit()

    # offers

    def create_offer(self, offer: models.WishOffer) -> models.WishOffer:
        self.session.add(offer)
        self.session.commit()
        self.session.refresh(offer)
        return offer

    def get_offer(self, offer_id: int) -> Optional[models.WishOffer]:
        return self.session.get(models.WishOffer, offer_id)

    def save_offer(self, offer: models.WishOffer) -> models.WishOffer:
        self.session.add(offer)
        self.session.commit()
        self.session.refresh(offer)
        return offer

    def list_offers(self, wish_id: int) -> List[models.WishOffer]:
        stmt = select(models.WishOffer).where(models.WishOffer.wish_id == wish_id)
        return self.session.exec(_newest_first(stmt, models.WishOffer)).all()

    def has_pending_offer(self, wish_id: int, offerer_id: int) -> bool:
        stmt = select(models.WishOffer.id).where(
            models.WishOffer.wish_id == wish_id,
            models.WishOffer.offerer_id == offerer_id,
            models.WishOffer.status == "pending",
        )
        return self.session.exec(stmt).first() is not None


class ContactRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, message: models.ContactMessage) -> models.ContactMessage:
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_all(self) -> List[models.ContactMessage]:
        return self.session.exec(_newest_first(select(models.ContactMessage), models.ContactMessage)).all()


class ReportRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, report: models.Report) -> models.Report:
        self.session.add(report)
        self.session.commit()
        self.session.refresh(report)
        return report

    def get(self, report_id: int) -> Optional[models.Report]:
        return self.session.get(models.Report, report_id)

    def save(self, report: models.Report) -> models.Report:
        self.session.add(report)
        self.session.commit()
        self.session.refresh(report)
        return report

    def list(self, status: Optional[str] = None) -> List[models.Report]:
        stmt = select(models.Report)
        if status:
            stmt = stmt.where(models.Report.status == status)
        return self.session.exec(_newest_first(stmt, models.Report)).all()

    def list_by_reporter(self, reporter_id: int) -> List[models.Report]:
        stmt = select(models.Report).where(models.Report.reporter_id == reporter_id)
        return self.session.exec(_newest_first(stmt, models.Report)).all()


class CommunityMetricsRepository:
    """Access to the single community metrics row, created on first use."""
    def __init__(self, session: Session):
        self.session = session

    def get(self) -> models.CommunityMetrics:
        row = self.session.exec(select(models.CommunityMetrics).order_by(col(models.CommunityMetrics.id))).first()
        if row is None:
            row = models.CommunityMetrics()
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def increment(self, toys_saved: int = 0, families_connected: int = 0, waste_reduced: float = 0.0) -> models.CommunityMetrics:
        row = self.get()
        row.toys_saved = max(0, row.toys_saved + toys_saved)
        row.families_connected = max(0, row.families_connected + families_connected)
        row.waste_reduced = max(0.0, row.waste_reduced + waste_reduced)
        row.updated_at = datetime.now(timezone.utc)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row
