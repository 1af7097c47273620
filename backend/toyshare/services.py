"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the pure filtering/scoring helpers. Services perform validation,
execute domain logic and persist aggregates via repositories.

Errors are reported with built-in exceptions so controllers can map
them onto HTTP status codes: `ValueError` for invalid input,
`LookupError` for missing records and `PermissionError` when the acting
user may not perform the operation.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session, select, or_

from . import models, repositories
from .config import settings
from .utils import sustainability
from .utils.filters import ToyFilters, matches_search, matches_tags
from .utils.geo import filter_by_radius

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS

# kilograms of waste kept out of landfill per rehomed toy
WASTE_PER_EXCHANGE_KG = 2.0

logger = logging.getLogger("toyshare.services")


def is_admin(user: Optional[models.User]) -> bool:
    if user is None:
        return False
    return bool(user.is_admin) or user.username.lower() in settings.ADMIN_USERNAMES


def public_user(user: models.User) -> dict:
    """Serialize a user without credentials."""
    return user.model_dump(exclude={"password_hash"})


def _require(obj, what: str):
    if obj is None:
        raise LookupError(f"{what} not found")
    return obj


def is_tradeable(toy: models.Toy) -> bool:
    return bool(toy.is_available) and toy.status == "active"


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str, email: str, name: str, location: str, **profile) -> models.User:
        """Create a new user with a hashed password.

        Raises ValueError when the username or email is already taken.
        """
        if self.user_repo.get_by_username(username):
            raise ValueError("Username already exists")
        if self.user_repo.get_by_email(email):
            raise ValueError("Email already exists")
        hashed = PWD_CTX.hash(password)
        u = models.User(
            username=username,
            password_hash=hashed,
            email=email,
            name=name,
            location=location,
            current_badge=sustainability.calculate_badge(0),
            **profile,
        )
        user = self.user_repo.create(u)
        logger.info("registered user id=%s username=%s", user.id, user.username)
        return user

    def authenticate(self, username: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return self.create_token(user)

    @staticmethod
    def create_token(user: models.User) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


class UserService:
    """Profile reads and updates."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def get(self, user_id: int) -> models.User:
        return _require(self.user_repo.get(user_id), "User")

    def update_profile(self, user_id: int, actor: models.User, updates: dict) -> models.User:
        """Apply profile `updates` (already stripped of unset fields)."""
        if actor.id != user_id:
            raise PermissionError("Not authorized to update this user")
        user = self.get(user_id)
        if not updates:
            raise ValueError("No valid fields to update")
        new_username = updates.get("username")
        if new_username and new_username != user.username and self.user_repo.get_by_username(new_username):
            raise ValueError("Username already exists")
        new_email = updates.get("email")
        if new_email and new_email.lower() != user.email.lower() and self.user_repo.get_by_email(new_email):
            raise ValueError("Email already exists")
        for key, value in updates.items():
            setattr(user, key, value)
        return self.user_repo.save(user)

    def set_profile_picture(self, user: models.User, url: str) -> models.User:
        user = self.get(user.id)
        user.profile_picture = url
        return self.user_repo.save(user)


class SustainabilityService:
    """Maintain per-user scores, community totals and the leaderboard."""

    LEADERBOARD_COLUMNS = {
        "points": "points",
        "shared": "toys_shared",
        "exchanges": "successful_exchanges",
    }

    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.metrics_repo = repositories.CommunityMetricsRepository(session)

    def record(self, user_id: int, toys_shared: int = 0, successful_exchanges: int = 0) -> Optional[models.User]:
        """Apply counter deltas to a user and persist the rescored result.

        Returns None if the user no longer exists.
        """
        user = self.user_repo.get(user_id)
        if user is None:
            return None
        previous_badge = user.current_badge
        sustainability.apply_increments(user, toys_shared=toys_shared, successful_exchanges=successful_exchanges)
        user = self.user_repo.save(user)
        if user.current_badge != previous_badge:
            logger.info("badge change user_id=%s %s -> %s", user.id, previous_badge, user.current_badge)
        return user

    def summary(self, user_id: int) -> dict:
        user = _require(self.user_repo.get(user_id), "User")
        return {
            "user_id": user.id,
            "toys_shared": user.toys_shared,
            "successful_exchanges": user.successful_exchanges,
            "sustainability_score": user.sustainability_score,
            "current_badge": user.current_badge,
            "points": user.points,
            "next_badge": sustainability.next_badge(user.sustainability_score),
        }

    def increment_for(self, user_id: int, actor: models.User, toys_shared: int, successful_exchanges: int) -> models.User:
        if user_id != actor.id and not is_admin(actor):
            raise PermissionError("Not authorized to update this user's metrics")
        _require(self.user_repo.get(user_id), "User")
        return self.record(user_id, toys_shared=toys_shared, successful_exchanges=successful_exchanges)

    def leaderboard(self, board_type: str = "points", limit: int = 10) -> List[dict]:
        column = self.LEADERBOARD_COLUMNS.get(board_type)
        if column is None:
            raise ValueError(f"unknown leaderboard type: {board_type}")
        if limit < 1 or limit > 100:
            raise ValueError("limit must be between 1 and 100")
        out = []
        for rank, user in enumerate(self.user_repo.top_by(column, limit), start=1):
            out.append({
                "rank": rank,
                "user_id": user.id,
                "username": user.username,
                "name": user.name,
                "profile_picture": user.profile_picture,
                "value": getattr(user, column),
                "sustainability_score": user.sustainability_score,
                "current_badge": user.current_badge,
                "toys_shared": user.toys_shared,
                "successful_exchanges": user.successful_exchanges,
            })
        return out

    def community_metrics(self) -> dict:
        row = self.metrics_repo.get()
        return {
            "toys_saved": row.toys_saved,
            "families_connected": row.families_connected,
            "waste_reduced": round(row.waste_reduced, 2),
            "total_toys": repositories.ToyRepository(self.session).count(),
            "active_users": self.user_repo.count(),
            "successful_exchanges": repositories.ToyRequestRepository(self.session).count_by_status("approved"),
        }

    def increment_community(self, toys_saved: int = 0, families_connected: int = 0, waste_reduced: float = 0.0) -> dict:
        self.metrics_repo.increment(toys_saved=toys_saved, families_connected=families_connected, waste_reduced=waste_reduced)
        return self.community_metrics()

    def record_exchange(self, owner_id: int, receiver_id: int) -> None:
        """Credit both sides of a completed exchange and the community totals."""
        self.record(owner_id, successful_exchanges=1)
        self.record(receiver_id, successful_exchanges=1)
        self.metrics_repo.increment(toys_saved=1, families_connected=1, waste_reduced=WASTE_PER_EXCHANGE_KG)


class ToyService:
    """Listing CRUD and filtered search."""
    def __init__(self, session: Session):
        self.session = session
        self.toy_repo = repositories.ToyRepository(session)
        self.scores = SustainabilityService(session)

    def search(self, filters: ToyFilters) -> List[dict]:
        """Return serialized toys matching `filters`, newest first.

        SQL predicates narrow the rows first; tags (any-of) and search
        text are matched next; finally, when a reference point is given,
        rows without coordinates or outside the radius are dropped and
        each remaining toy carries its `distance` in miles.
        """
        toys = [
            t for t in self.toy_repo.search(filters)
            if matches_tags(t.tags, filters.tags) and matches_search(t, filters.search)
        ]
        if not filters.has_geo:
            return [t.model_dump() for t in toys]
        nearby = filter_by_radius(toys, filters.latitude, filters.longitude, filters.distance)
        return [{**t.model_dump(), "distance": round(d, 2)} for t, d in nearby]

    def get(self, toy_id: int) -> models.Toy:
        return _require(self.toy_repo.get(toy_id), "Toy")

    def list_by_user(self, user_id: int) -> List[models.Toy]:
        return self.toy_repo.list_by_user(user_id)

    def create(self, owner: models.User, data: dict) -> models.Toy:
        """List a new toy and credit the owner's `toys_shared` counter."""
        data = dict(data)
        data["tags"] = [t.strip() for t in data.get("tags") or [] if t and t.strip()]
        toy = self.toy_repo.create(models.Toy(user_id=owner.id, **data))
        self.scores.record(owner.id, toys_shared=1)
        logger.info("toy created id=%s owner=%s", toy.id, owner.id)
        return toy

    def update(self, toy_id: int, actor: models.User, updates: dict) -> models.Toy:
        toy = self.get(toy_id)
        if toy.user_id != actor.id:
            raise PermissionError("Not authorized to update this toy")
        if not updates:
            raise ValueError("No valid fields to update")
        for key, value in updates.items():
            setattr(toy, key, value)
        return self.toy_repo.save(toy)

    def delete(self, toy_id: int, actor: models.User) -> None:
        """Delete a toy (owner or admin) and take back the owner's credit."""
        toy = self.get(toy_id)
        if toy.user_id != actor.id and not is_admin(actor):
            raise PermissionError("Not authorized to delete this toy")
        owner_id = toy.user_id
        self.toy_repo.delete(toy)
        self.scores.record(owner_id, toys_shared=-1)
        logger.info("toy deleted id=%s owner=%s by=%s", toy_id, owner_id, actor.id)


class ExchangeService:
    """Toy requests and the exchange lifecycle.

    A request moves from `pending` to `approved`, `rejected` or
    `cancelled`; approval completes the exchange.
    """
    def __init__(self, session: Session):
        self.session = session
        self.toy_repo = repositories.ToyRepository(session)
        self.request_repo = repositories.ToyRequestRepository(session)
        self.history_repo = repositories.ToyHistoryRepository(session)
        self.scores = SustainabilityService(session)

    def create_request(self, toy_id: int, requester: models.User, message: str, preferred_location: Optional[str] = None) -> models.ToyRequest:
        toy = _require(self.toy_repo.get(toy_id), "Toy")
        if toy.user_id == requester.id:
            raise ValueError("You cannot request your own toy")
        if not is_tradeable(toy):
            raise ValueError("This toy is no longer available")
        if self.request_repo.has_pending(toy_id, requester.id):
            raise ValueError("You already have a pending request for this toy")
        req = models.ToyRequest(
            toy_id=toy.id,
            requester_id=requester.id,
            owner_id=toy.user_id,
            message=message,
            preferred_location=preferred_location,
        )
        return self.request_repo.create(req)

    def list_for_toy(self, toy_id: int, actor: models.User) -> List[models.ToyRequest]:
        toy = _require(self.toy_repo.get(toy_id), "Toy")
        if toy.user_id != actor.id:
            raise PermissionError("Not authorized to view these requests")
        return self.request_repo.list_by_toy(toy_id)

    def list_made(self, user_id: int) -> List[models.ToyRequest]:
        return self.request_repo.list_by_requester(user_id)

    def list_received(self, user_id: int) -> List[models.ToyRequest]:
        return self.request_repo.list_by_owner(user_id)

    def update_status(self, request_id: int, actor: models.User, status: str) -> models.ToyRequest:
        """Approve or reject a pending request as the toy owner."""
        if status not in ("approved", "rejected"):
            raise ValueError("Invalid status")
        req = _require(self.request_repo.get(request_id), "Request")
        if req.owner_id != actor.id:
            raise PermissionError("Not authorized to update this request")
        if req.status != "pending":
            raise ValueError(f"Request is already {req.status}")
        if status == "rejected":
            req.status = "rejected"
            return self.request_repo.save(req)

        toy = _require(self.toy_repo.get(req.toy_id), "Toy")
        if not is_tradeable(toy):
            raise ValueError("This toy is no longer available")
        req.status = "approved"
        req = self.request_repo.save(req)
        self.hand_over(toy, req.owner_id, req.requester_id, keep_request_id=req.id)
        self.scores.record_exchange(req.owner_id, req.requester_id)
        logger.info("exchange completed request=%s toy=%s owner=%s requester=%s", req.id, toy.id, req.owner_id, req.requester_id)
        return req

    def hand_over(self, toy: models.Toy, previous_owner_id: int, new_owner_id: int, keep_request_id: Optional[int] = None) -> models.ToyHistory:
        """Take `toy` off the market and record the hand-over in its history.

        Every other pending request for the toy is rejected.
        """
        toy.is_available = False
        toy.status = "traded"
        self.toy_repo.save(toy)
        for other in self.request_repo.list_by_toy(toy.id):
            if other.id != keep_request_id and other.status == "pending":
                other.status = "rejected"
                self.request_repo.save(other)
        entry = models.ToyHistory(toy_id=toy.id, previous_owner_id=previous_owner_id, new_owner_id=new_owner_id)
        return self.history_repo.create(entry)

    def cancel(self, request_id: int, actor: models.User) -> models.ToyRequest:
        req = _require(self.request_repo.get(request_id), "Request")
        if req.requester_id != actor.id:
            raise PermissionError("Not authorized to cancel this request")
        if req.status != "pending":
            raise ValueError("Only pending requests can be cancelled")
        req.status = "cancelled"
        return self.request_repo.save(req)

    def leave_feedback(self, request_id: int, actor: models.User, rating: int, feedback: Optional[str]) -> models.ToyRequest:
        req = _require(self.request_repo.get(request_id), "Request")
        if req.requester_id != actor.id:
            raise PermissionError("Only the requester can leave feedback")
        if req.status != "approved":
            raise ValueError("Feedback is only possible after an approved exchange")
        if not 1 <= rating <= 5:
            raise ValueError("rating must be between 1 and 5")
        req.rating = rating
        req.feedback = feedback
        return self.request_repo.save(req)

    def reviews_for(self, user_id: int) -> List[models.ToyRequest]:
        return [
            r for r in self.request_repo.list_by_owner(user_id)
            if r.status == "approved" and r.feedback and r.rating
        ]


class MessageService:
    def __init__(self, session: Session):
        self.session = session
        self.message_repo = repositories.MessageRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.toy_repo = repositories.ToyRepository(session)

    def send(self, sender: models.User, receiver_id: int, toy_id: int, content: str) -> models.Message:
        if receiver_id == sender.id:
            raise ValueError("You cannot message yourself")
        if not content.strip():
            raise ValueError("Message content is empty")
        _require(self.user_repo.get(receiver_id), "Receiver")
        _require(self.toy_repo.get(toy_id), "Toy")
        msg = models.Message(sender_id=sender.id, receiver_id=receiver_id, toy_id=toy_id, content=content.strip())
        return self.message_repo.create(msg)

    def mark_read(self, message_id: int, actor: models.User) -> models.Message:
        msg = _require(self.message_repo.get(message_id), "Message")
        if msg.receiver_id != actor.id:
            raise PermissionError("Not authorized to update this message")
        msg.read = True
        return self.message_repo.save(msg)

    def delete(self, message_id: int, actor: models.User) -> None:
        """Senders may retract a message only until it has been read."""
        msg = _require(self.message_repo.get(message_id), "Message")
        if msg.sender_id != actor.id:
            raise PermissionError("Not authorized to delete this message")
        if msg.read:
            raise ValueError("Cannot delete messages that have been read")
        self.message_repo.delete(msg)


class FavoriteService:
    def __init__(self, session: Session):
        self.session = session
        self.favorite_repo = repositories.FavoriteRepository(session)
        self.toy_repo = repositories.ToyRepository(session)

    def toggle(self, user: models.User, toy_id: int) -> Optional[models.Favorite]:
        """Add the toy to favorites, or remove it if already there.

        Returns the new favorite, or None when it was removed.
        """
        _require(self.toy_repo.get(toy_id), "Toy")
        existing = self.favorite_repo.get_by_user_and_toy(user.id, toy_id)
        if existing:
            self.favorite_repo.delete(existing)
            return None
        return self.favorite_repo.create(models.Favorite(user_id=user.id, toy_id=toy_id))

    def is_favorited(self, user: models.User, toy_id: int) -> bool:
        return self.favorite_repo.get_by_user_and_toy(user.id, toy_id) is not None

    def list_with_toys(self, user: models.User) -> List[dict]:
        out = []
        for fav in self.favorite_repo.list_by_user(user.id):
            toy = self.toy_repo.get(fav.toy_id)
            out.append({**fav.model_dump(), "toy": toy.model_dump() if toy else None})
        return out


class WishService:
    """Wishes, offers to fulfil them, and the resulting credit."""
    def __init__(self, session: Session):
        self.session = session
        self.wish_repo = repositories.WishRepository(session)
        self.toy_repo = repositories.ToyRepository(session)
        self.scores = SustainabilityService(session)

    def search(self, filters: ToyFilters) -> List[dict]:
        wishes = [
            w for w in self.wish_repo.search(filters)
            if matches_tags(w.tags, filters.tags) and matches_search(w, filters.search)
        ]
        if not filters.has_geo:
            return [w.model_dump() for w in wishes]
        nearby = filter_by_radius(wishes, filters.latitude, filters.longitude, filters.distance)
        return [{**w.model_dump(), "distance": round(d, 2)} for w, d in nearby]

    def get(self, wish_id: int) -> models.Wish:
        return _require(self.wish_repo.get(wish_id), "Wish")

    def list_by_user(self, user_id: int) -> List[models.Wish]:
        return self.wish_repo.list_by_user(user_id)

    def create(self, owner: models.User, data: dict) -> models.Wish:
        return self.wish_repo.create(models.Wish(user_id=owner.id, **data))

    def update(self, wish_id: int, actor: models.User, updates: dict) -> models.Wish:
        wish = self.get(wish_id)
        if wish.user_id != actor.id:
            raise PermissionError("Not authorized to update this wish")
        if not updates:
            raise ValueError("No valid fields to update")
        for key, value in updates.items():
            setattr(wish, key, value)
        return self.wish_repo.save(wish)

    def delete(self, wish_id: int, actor: models.User) -> None:
        wish = self.get(wish_id)
        if wish.user_id != actor.id and not is_admin(actor):
            raise PermissionError("Not authorized to delete this wish")
        self.wish_repo.delete(wish)

    def make_offer(self, wish_id: int, offerer: models.User, message: str, toy_id: Optional[int] = None) -> models.WishOffer:
        wish = self.get(wish_id)
        if wish.user_id == offerer.id:
            raise ValueError("You cannot offer to your own wish")
        if wish.status != "active":
            raise ValueError("This wish is no longer active")
        if toy_id is not None:
            toy = _require(self.toy_repo.get(toy_id), "Toy")
            if toy.user_id != offerer.id:
                raise PermissionError("You can only offer your own toys")
            if not is_tradeable(toy):
                raise ValueError("This toy is no longer available")
        if self.wish_repo.has_pending_offer(wish_id, offerer.id):
            raise ValueError("You already have a pending offer for this wish")
        offer = models.WishOffer(wish_id=wish_id, offerer_id=offerer.id, toy_id=toy_id, message=message)
        return self.wish_repo.create_offer(offer)

    def list_offers(self, wish_id: int, actor: models.User) -> List[models.WishOffer]:
        wish = self.get(wish_id)
        if wish.user_id != actor.id:
            raise PermissionError("Not authorized to view these offers")
        return self.wish_repo.list_offers(wish_id)

    def update_offer_status(self, offer_id: int, actor: models.User, status: str) -> models.WishOffer:
        """Accept, reject or complete an offer as the wish owner.

        `pending` offers may be accepted or rejected; only an accepted offer
        may be completed. Acceptance fulfils the wish and credits both
        families.
        """
        if status not in ("accepted", "rejected", "completed"):
            raise ValueError("Invalid status")
        offer = _require(self.wish_repo.get_offer(offer_id), "Offer")
        wish = self.get(offer.wish_id)
        if wish.user_id != actor.id:
            raise PermissionError("Not authorized to update this offer")
        if status == "completed":
            if offer.status != "accepted":
                raise ValueError("Only accepted offers can be completed")
        elif offer.status != "pending":
            raise ValueError(f"Offer is already {offer.status}")
        toy = None
        if status == "accepted" and offer.toy_id is not None:
            toy = self.toy_repo.get(offer.toy_id)
            if toy is None or not is_tradeable(toy):
                raise ValueError("This toy is no longer available")
        offer.status = status
        offer = self.wish_repo.save_offer(offer)
        if status != "accepted":
            return offer

        wish.status = "fulfilled"
        self.wish_repo.save(wish)
        for other in self.wish_repo.list_offers(wish.id):
            if other.id != offer.id and other.status == "pending":
                other.status = "rejected"
                self.wish_repo.save_offer(other)
        if toy is not None:
            ExchangeService(self.session).hand_over(toy, offer.offerer_id, wish.user_id)
        # a listed toy was already credited when it was created
        self.scores.record(offer.offerer_id, toys_shared=0 if toy is not None else 1, successful_exchanges=1)
        self.scores.record(wish.user_id, successful_exchanges=1)
        self.scores.metrics_repo.increment(toys_saved=1, families_connected=1, waste_reduced=WASTE_PER_EXCHANGE_KG)
        logger.info("wish fulfilled wish=%s offer=%s offerer=%s", wish.id, offer.id, offer.offerer_id)
        return offer


class FollowService:
    """Who follows whom."""
    def __init__(self, session: Session):
        self.session = session
        self.follow_repo = repositories.FollowRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def follow(self, follower: models.User, user_id: int) -> models.Follow:
        if follower.id == user_id:
            raise ValueError("Cannot follow yourself")
        _require(self.user_repo.get(user_id), "User")
        if self.follow_repo.get(follower.id, user_id):
            raise ValueError("Already following this user")
        return self.follow_repo.create(models.Follow(follower_id=follower.id, following_id=user_id))

    def unfollow(self, follower: models.User, user_id: int) -> None:
        follow = _require(self.follow_repo.get(follower.id, user_id), "Follow relationship")
        self.follow_repo.delete(follow)

    def is_following(self, follower_id: int, user_id: int) -> bool:
        return self.follow_repo.get(follower_id, user_id) is not None

    def followers(self, user_id: int) -> List[dict]:
        _require(self.user_repo.get(user_id), "User")
        return self._with_users(self.follow_repo.followers_of(user_id), "follower_id", "follower")

    def following(self, user_id: int) -> List[dict]:
        _require(self.user_repo.get(user_id), "User")
        return self._with_users(self.follow_repo.followed_by(user_id), "following_id", "following")

    def _with_users(self, follows: List[models.Follow], id_field: str, key: str) -> List[dict]:
        out = []
        for follow in follows:
            user = self.user_repo.get(getattr(follow, id_field))
            if user is not None:
                out.append({"follow": follow.model_dump(), key: public_user(user)})
        return out


class ToyHistoryService:
    """A toy's journey: hand-overs plus the stories families attach to them."""
    def __init__(self, session: Session):
        self.session = session
        self.history_repo = repositories.ToyHistoryRepository(session)
        self.toy_repo = repositories.ToyRepository(session)
        self.request_repo = repositories.ToyRequestRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def list_for_toy(self, toy_id: int) -> List[models.ToyHistory]:
        _require(self.toy_repo.get(toy_id), "Toy")
        return self.history_repo.list_by_toy(toy_id)

    def add_entry(self, toy_id: int, actor: models.User, previous_owner_id: int, new_owner_id: int,
                  story: Optional[str] = None, photos: Optional[List[str]] = None) -> models.ToyHistory:
        """Record a hand-over by hand; only the owner or an approved recipient may."""
        toy = _require(self.toy_repo.get(toy_id), "Toy")
        if toy.user_id != actor.id:
            received = any(
                r.requester_id == actor.id and r.status == "approved"
                for r in self.request_repo.list_by_toy(toy_id)
            )
            if not received:
                raise PermissionError("Not authorized to add to this toy's history")
        if previous_owner_id == new_owner_id:
            raise ValueError("Previous and new owner must differ")
        _require(self.user_repo.get(previous_owner_id), "Previous owner")
        _require(self.user_repo.get(new_owner_id), "New owner")
        entry = models.ToyHistory(
            toy_id=toy_id,
            previous_owner_id=previous_owner_id,
            new_owner_id=new_owner_id,
            story=story,
            photos=photos or [],
        )
        return self.history_repo.create(entry)

    def add_story(self, entry_id: int, actor: models.User, story: str, photos: Optional[List[str]] = None) -> models.ToyHistory:
        entry = _require(self.history_repo.get(entry_id), "History entry")
        if actor.id not in (entry.previous_owner_id, entry.new_owner_id):
            raise PermissionError("Not authorized to edit this history entry")
        if not story or not story.strip():
            raise ValueError("Story is required")
        entry.story = story.strip()
        if photos is not None:
            entry.photos = photos
        return self.history_repo.save(entry)


class ModerationService:
    """Contact messages, reports and admin-only maintenance."""
    def __init__(self, session: Session):
        self.session = session
        self.contact_repo = repositories.ContactRepository(session)
        self.report_repo = repositories.ReportRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def submit_contact(self, name: str, email: str, subject: str, message: str) -> models.ContactMessage:
        return self.contact_repo.create(models.ContactMessage(name=name, email=email, subject=subject, message=message))

    def create_report(self, reporter: models.User, target_type: str, target_id: int, reason: str, details: Optional[str]) -> models.Report:
        lookup = {
            "user": repositories.UserRepository(self.session).get,
            "toy": repositories.ToyRepository(self.session).get,
            "message": repositories.MessageRepository(self.session).get,
        }.get(target_type)
        if lookup is None:
            raise ValueError(f"invalid target type: {target_type}")
        _require(lookup(target_id), target_type.capitalize())
        report = models.Report(reporter_id=reporter.id, target_type=target_type, target_id=target_id, reason=reason, details=details)
        return self.report_repo.create(report)

    def resolve_report(self, report_id: int, admin: models.User, status: str = "resolved") -> models.Report:
        if status not in ("resolved", "dismissed"):
            raise ValueError("Invalid status")
        report = _require(self.report_repo.get(report_id), "Report")
        report.status = status
        report.reviewed_by = admin.id
        report.reviewed_at = datetime.now(timezone.utc)
        return self.report_repo.save(report)

    def delete_user(self, user_id: int, admin: models.User) -> None:
        """Remove a user and everything they own or are party to."""
        if user_id == admin.id:
            raise ValueError("Cannot delete your own account")
        user = _require(self.user_repo.get(user_id), "User")
        toy_repo = repositories.ToyRepository(self.session)
        wish_repo = repositories.WishRepository(self.session)
        for toy in toy_repo.list_by_user(user_id):
            toy_repo.delete(toy)
        for wish in wish_repo.list_by_user(user_id):
            wish_repo.delete(wish)
        leftovers = [
            select(models.Favorite).where(models.Favorite.user_id == user_id),
            select(models.Message).where(or_(models.Message.sender_id == user_id, models.Message.receiver_id == user_id)),
            select(models.ToyRequest).where(or_(models.ToyRequest.requester_id == user_id, models.ToyRequest.owner_id == user_id)),
            select(models.WishOffer).where(models.WishOffer.offerer_id == user_id),
            select(models.Report).where(models.Report.reporter_id == user_id),
            select(models.Follow).where(or_(models.Follow.follower_id == user_id, models.Follow.following_id == user_id)),
            select(models.ToyHistory).where(or_(models.ToyHistory.previous_owner_id == user_id, models.ToyHistory.new_owner_id == user_id)),
        ]
        for stmt in leftovers:
            for row in self.session.exec(stmt).all():
                self.session.delete(row)
        self.user_repo.delete(user)
        logger.info("user deleted id=%s by admin=%s", user_id, admin.id)
