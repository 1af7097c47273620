"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the ToyShare marketplace
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and translate service errors into HTTP status
codes (ValueError -> 400, PermissionError -> 403, LookupError -> 404).

Endpoint groups:
- auth and profiles: /api/register, /api/login, /api/user, /api/users/...
- listings: /api/toys (filtered, optionally by distance), /api/toys/{id}
- exchanges: /api/toys/{id}/request, /api/requests/..., /api/toys/{id}/history
- follows: /api/users/{id}/follow, /api/users/{id}/followers
- messaging: /api/messages, /api/conversations/{id}
- favorites: /api/favorites, /api/toys/{id}/favorite
- wishes: /api/wishes, /api/wish-offers/{id}/status
- sustainability: /api/community-metrics, /api/leaderboard, /api/badges
- moderation: /api/contact, /api/reports, /api/admin/...
"""

from fastapi import FastAPI, Depends, UploadFile, File, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlmodel import Session
import os
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, models
from .auth import get_current_user, require_admin
from .schemas import (
    RegisterIn, LoginIn, ProfileUpdate, ToyIn, ToyUpdate, MessageIn, ToyRequestIn,
    RequestStatusIn, FeedbackIn, WishIn, WishUpdate, WishOfferIn, OfferStatusIn,
    ContactIn, ReportIn, SustainabilityIncrement, CommunityMetricsIncrement, ToyHistoryIn, StoryIn,
)
from .utils.filters import parse_toy_filters
from .utils.rate_limit import InMemoryRateLimiter
from .utils.sustainability import badge_table
from .utils.uploads import UnsupportedUpload, save_image, validate_upload_filename
from .repositories import MessageRepository, ReportRepository, ContactRepository, UserRepository
from .config import settings

app = FastAPI(title="ToyShare API")
logger = logging.getLogger("toyshare.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_contact_rate_limiter = InMemoryRateLimiter()

SERVICE_ERRORS = (ValueError, LookupError, PermissionError)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Uploaded avatars are served back from here
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    record = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        record["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(record, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        record["status_code"] = response.status_code
        record["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info("request_done %s", json.dumps(record, ensure_ascii=True))
    return response


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc).strip("'\""))
    return HTTPException(status_code=400, detail=str(exc))


def _enforce_contact_rate_limit(request: Request) -> None:
    key = f"{request.client.host if request.client else 'unknown'}:{request.url.path}"
    allowed, retry_after = _contact_rate_limiter.allow(
        key, settings.CONTACT_RATE_LIMIT_PER_MIN, settings.CONTACT_RATE_LIMIT_WINDOW_SECONDS
    )
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# ---------------------------------------------------------------- auth / users

@app.post('/api/register', status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user and return the profile with an access token."""
    auth = services.AuthService(db)
    try:
        user = auth.register(**payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {**services.public_user(user), 'access_token': auth.create_token(user)}


@app.post('/api/login')
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token, 'token_type': 'bearer'}


@app.get('/api/user')
def current_user(user: models.User = Depends(get_current_user)):
    return services.public_user(user)


@app.get('/api/users/{user_id}')
def get_user(user_id: int, db: Session = Depends(get_session)):
    try:
        return services.public_user(services.UserService(db).get(user_id))
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.patch('/api/users/{user_id}')
def update_user(user_id: int, payload: ProfileUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update the caller's own profile; only sent fields are applied."""
    try:
        updated = services.UserService(db).update_profile(user_id, user, payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return services.public_user(updated)


@app.post('/api/users/{user_id}/avatar')
def upload_avatar(user_id: int, file: UploadFile = File(...), db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Upload a profile picture (JPEG, PNG, GIF or WebP)."""
    if user_id != user.id:
        raise HTTPException(status_code=403, detail='Not authorized to update this user')
    try:
        validate_upload_filename(file.filename or "")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    payload = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail='file too large')
    try:
        url = save_image(payload, settings.UPLOAD_DIR)
    except UnsupportedUpload as e:
        raise HTTPException(status_code=415, detail=str(e))
    updated = services.UserService(db).set_profile_picture(user, url)
    return services.public_user(updated)


@app.get('/api/users/{user_id}/toys')
def list_user_toys(user_id: int, db: Session = Depends(get_session)):
    return services.ToyService(db).list_by_user(user_id)


@app.get('/api/users/{user_id}/reviews')
def list_user_reviews(user_id: int, db: Session = Depends(get_session)):
    """Approved exchanges of this owner that carry a rating and feedback."""
    try:
        services.UserService(db).get(user_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return services.ExchangeService(db).reviews_for(user_id)


@app.get('/api/users/{user_id}/wishes')
def list_user_wishes(user_id: int, db: Session = Depends(get_session)):
    return services.WishService(db).list_by_user(user_id)


@app.get('/api/users/{user_id}/sustainability')
def get_sustainability(user_id: int, db: Session = Depends(get_session)):
    try:
        return services.SustainabilityService(db).summary(user_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.patch('/api/users/{user_id}/sustainability')
def update_sustainability(user_id: int, payload: SustainabilityIncrement, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Apply counter increments for the caller (or any user, for admins)."""
    try:
        updated = services.SustainabilityService(db).increment_for(
            user_id, user, payload.toys_shared, payload.successful_exchanges
        )
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return services.public_user(updated)


# ---------------------------------------------------------------- toys

@app.get('/api/toys')
def list_toys(request: Request, db: Session = Depends(get_session)):
    """List toys with optional filters.

    Categorical filters (location, ageRange, condition, category, status,
    tags) accept a single value, repeated parameters or a comma-separated
    list. `search` matches title, description and tags. When `latitude`
    and `longitude` are given, toys farther than `distance` miles
    (default 10) or without coordinates are excluded and each result
    carries its `distance`.
    """
    try:
        filters = parse_toy_filters(request.query_params, default_distance=settings.DEFAULT_SEARCH_RADIUS_MILES)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return services.ToyService(db).search(filters)


@app.get('/api/toys/mine')
def list_my_toys(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ToyService(db).list_by_user(user.id)


@app.get('/api/toys/{toy_id}')
def get_toy(toy_id: int, db: Session = Depends(get_session)):
    try:
        return services.ToyService(db).get(toy_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.post('/api/toys', status_code=201)
def create_toy(payload: ToyIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List a new toy for the authenticated user."""
    return services.ToyService(db).create(user, payload.model_dump())


@app.patch('/api/toys/{toy_id}')
def update_toy(toy_id: int, payload: ToyUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ToyService(db).update(toy_id, user, payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.delete('/api/toys/{toy_id}', status_code=204)
def delete_toy(toy_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.ToyService(db).delete(toy_id, user)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=204)


# ---------------------------------------------------------------- exchanges

@app.post('/api/toys/{toy_id}/request', status_code=201)
def request_toy(toy_id: int, payload: ToyRequestIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ExchangeService(db).create_request(toy_id, user, payload.message, payload.preferred_location)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/toys/{toy_id}/requests')
def list_toy_requests(toy_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ExchangeService(db).list_for_toy(toy_id, user)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/requests/made')
def list_requests_made(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ExchangeService(db).list_made(user.id)


@app.get('/api/requests/received')
def list_requests_received(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ExchangeService(db).list_received(user.id)


@app.patch('/api/requests/{request_id}/status')
def update_request_status(request_id: int, payload: RequestStatusIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Approve or reject a pending request; approval completes the exchange."""
    try:
        return services.ExchangeService(db).update_status(request_id, user, payload.status)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.patch('/api/requests/{request_id}/cancel')
def cancel_request(request_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ExchangeService(db).cancel(request_id, user)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.post('/api/requests/{request_id}/feedback')
def leave_feedback(request_id: int, payload: FeedbackIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ExchangeService(db).leave_feedback(request_id, user, payload.rating, payload.feedback)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/toys/{toy_id}/history')
def get_toy_history(toy_id: int, db: Session = Depends(get_session)):
    """The toy's journey, oldest hand-over first."""
    try:
        return services.ToyHistoryService(db).list_for_toy(toy_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.post('/api/toys/{toy_id}/history', status_code=201)
def add_toy_history(toy_id: int, payload: ToyHistoryIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ToyHistoryService(db).add_entry(
            toy_id, user, payload.previous_owner_id, payload.new_owner_id, payload.story, payload.photos
        )
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.patch('/api/toy-history/{entry_id}/story')
def add_history_story(entry_id: int, payload: StoryIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ToyHistoryService(db).add_story(entry_id, user, payload.story, payload.photos)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


# ---------------------------------------------------------------- follows

@app.post('/api/users/{user_id}/follow', status_code=201)
def follow_user(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.FollowService(db).follow(user, user_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.delete('/api/users/{user_id}/unfollow', status_code=204)
def unfollow_user(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.FollowService(db).unfollow(user, user_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=204)


@app.get('/api/users/{user_id}/followers')
def list_followers(user_id: int, db: Session = Depends(get_session)):
    try:
        return services.FollowService(db).followers(user_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/users/{user_id}/following')
def list_following(user_id: int, db: Session = Depends(get_session)):
    try:
        return services.FollowService(db).following(user_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/users/{user_id}/is-following/{target_id}')
def is_following(user_id: int, target_id: int, db: Session = Depends(get_session)):
    return {'is_following': services.FollowService(db).is_following(user_id, target_id)}


# ---------------------------------------------------------------- messages

@app.get('/api/messages')
def list_messages(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return MessageRepository(db).list_for_user(user.id)


@app.get('/api/messages/unread/count')
def unread_count(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return {'unread': MessageRepository(db).count_unread(user.id)}


@app.get('/api/messages/{other_user_id}')
def get_conversation(other_user_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return MessageRepository(db).conversation(user.id, other_user_id)


@app.post('/api/messages', status_code=201)
def send_message(payload: MessageIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.MessageService(db).send(user, payload.receiver_id, payload.toy_id, payload.content)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.patch('/api/messages/{message_id}/read')
def mark_message_read(message_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.MessageService(db).mark_read(message_id, user)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.delete('/api/messages/{message_id}')
def delete_message(message_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.MessageService(db).delete(message_id, user)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return {'success': True}


@app.delete('/api/conversations/{other_user_id}')
def delete_conversation(other_user_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    deleted = MessageRepository(db).delete_conversation(user.id, other_user_id)
    return {'success': True, 'deleted': deleted}


# ---------------------------------------------------------------- favorites

@app.get('/api/favorites')
def list_favorites(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.FavoriteService(db).list_with_toys(user)


@app.post('/api/toys/{toy_id}/favorite')
def toggle_favorite(toy_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Toggle the favorite flag; 201 when added, 200 when removed."""
    try:
        favorite = services.FavoriteService(db).toggle(user, toy_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    if favorite is None:
        return {'favorited': False}
    return JSONResponse(status_code=201, content={'favorited': True, 'favorite': jsonable_encoder(favorite)})


@app.get('/api/toys/{toy_id}/favorite')
def get_favorite(toy_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return {'favorited': services.FavoriteService(db).is_favorited(user, toy_id)}


# ---------------------------------------------------------------- wishes

@app.get('/api/wishes')
def list_wishes(request: Request, db: Session = Depends(get_session)):
    """List public wishes; same filter parameters as /api/toys, status defaults to active."""
    try:
        filters = parse_toy_filters(request.query_params, default_distance=settings.DEFAULT_SEARCH_RADIUS_MILES)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return services.WishService(db).search(filters)


@app.get('/api/wishes/{wish_id}')
def get_wish(wish_id: int, db: Session = Depends(get_session)):
    try:
        return services.WishService(db).get(wish_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.post('/api/wishes', status_code=201)
def create_wish(payload: WishIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.WishService(db).create(user, payload.model_dump())


@app.patch('/api/wishes/{wish_id}')
def update_wish(wish_id: int, payload: WishUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.WishService(db).update(wish_id, user, payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.delete('/api/wishes/{wish_id}', status_code=204)
def delete_wish(wish_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.WishService(db).delete(wish_id, user)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=204)


@app.post('/api/wishes/{wish_id}/offer', status_code=201)
def offer_for_wish(wish_id: int, payload: WishOfferIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.WishService(db).make_offer(wish_id, user, payload.message, payload.toy_id)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/wishes/{wish_id}/offers')
def list_wish_offers(wish_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.WishService(db).list_offers(wish_id, user)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.patch('/api/wish-offers/{offer_id}/status')
def update_offer_status(offer_id: int, payload: OfferStatusIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.WishService(db).update_offer_status(offer_id, user, payload.status)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


# ---------------------------------------------------------------- community

@app.get('/api/community-metrics')
def community_metrics(db: Session = Depends(get_session)):
    return services.SustainabilityService(db).community_metrics()


@app.patch('/api/community-metrics')
def increment_community_metrics(payload: CommunityMetricsIncrement, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return services.SustainabilityService(db).increment_community(
        toys_saved=payload.toys_saved,
        families_connected=payload.families_connected,
        waste_reduced=payload.waste_reduced,
    )


@app.get('/api/leaderboard')
def leaderboard(type: str = "points", limit: int = 10, db: Session = Depends(get_session)):
    """Rank members by `points`, toys `shared` or successful `exchanges`."""
    try:
        return services.SustainabilityService(db).leaderboard(type, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/api/badges')
def badges():
    return badge_table()


# ---------------------------------------------------------------- moderation

@app.post('/api/contact', status_code=201)
def submit_contact(request: Request, payload: ContactIn, db: Session = Depends(get_session)):
    _enforce_contact_rate_limit(request)
    msg = services.ModerationService(db).submit_contact(payload.name, payload.email, payload.subject, payload.message)
    return {
        'success': True,
        'message': "Your message has been received. We'll get back to you soon.",
        'id': msg.id,
    }


@app.post('/api/reports', status_code=201)
def create_report(payload: ReportIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.ModerationService(db).create_report(user, payload.target_type, payload.target_id, payload.reason, payload.details)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/reports')
def list_my_reports(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ReportRepository(db).list_by_reporter(user.id)


@app.get('/api/admin/users')
def admin_list_users(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return [services.public_user(u) for u in UserRepository(db).list_all()]


@app.delete('/api/admin/users/{user_id}', status_code=204)
def admin_delete_user(user_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    try:
        services.ModerationService(db).delete_user(user_id, admin)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=204)


@app.get('/api/admin/toys')
def admin_list_toys(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return services.ToyService(db).search(parse_toy_filters({}))


@app.delete('/api/admin/toys/{toy_id}', status_code=204)
def admin_delete_toy(toy_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    try:
        services.ToyService(db).delete(toy_id, admin)
    except SERVICE_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=204)


@app.get('/api/admin/reports')
def admin_list_reports(status: str = None, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ReportRepository(db).list(status)


@app.patch('/api/admin/reports/{report_id}/resolve')
def admin_resolve_report(report_id: int, status: str = "resolved", db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    try:
        return services.ModerationService(db).resolve_report(report_id, admin, status)
    except SERVICE_ERRORS as e:
        raise _http_error(e)


@app.get('/api/admin/contact-messages')
def admin_contact_messages(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ContactRepository(db).list_all()
