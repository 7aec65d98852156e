import logging
import os
import shutil
import sys
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson.errors import BSONError
from fastapi import BackgroundTasks, Body, Depends, FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError

from database import (
    NEWEST_FIRST,
    Database,
    DuplicateError,
    InvalidIdError,
    NotFoundError,
    category_filter,
    serialize_doc,
    title_filter,
)
from media import MediaUploader, UploadError, remove_quietly
from notifier import Mailer, notify_subscribers
from schemas import Ad as AdSchema, Game as GameSchema, Subscriber as SubscriberSchema, User as UserSchema
from settings import Settings
from sitemap import build_sitemap

logger = logging.getLogger(__name__)

LATEST_GAMES_LIMIT = 50

# App and CORS
app = FastAPI(title="Game Zone API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Dependencies: everything is built once at startup and kept on app.state
def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else Settings.from_env()


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(500, "Database not available")
    return db


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_uploader(request: Request) -> MediaUploader:
    return request.app.state.uploader


@app.on_event("startup")
def connect_store():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app.state.settings = settings
    if not settings.database_url:
        logger.error("DATABASE_URL is not set; refusing to start")
        raise SystemExit(1)
    db = Database.from_url(settings.database_url, settings.database_name)
    db.ensure_indexes()
    app.state.db = db
    app.state.mailer = Mailer.from_settings(settings)
    app.state.uploader = MediaUploader.from_settings(settings)
    logger.info("Connected to database %s", db.name)


# Error mapping
@app.exception_handler(InvalidIdError)
def invalid_id_handler(request: Request, exc: InvalidIdError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": first_error(exc.errors())})


# BSON encoding failures (oversized ints, bad keys) come from the store driver too
@app.exception_handler(PyMongoError)
@app.exception_handler(BSONError)
@app.exception_handler(OverflowError)
def store_error_handler(request: Request, exc: Exception):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(Exception)
def server_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": str(exc) or type(exc).__name__})


def first_error(errors) -> str:
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def validate(schema: type, payload: Optional[Dict[str, Any]]) -> BaseModel:
    try:
        return schema.model_validate(payload or {})
    except ValidationError as e:
        raise HTTPException(400, first_error(e.errors()))


def update_fields(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    fields = {k: v for k, v in (payload or {}).items() if k != "_id"}
    if not fields:
        raise HTTPException(400, "No fields to update")
    return fields


def update_result(res) -> Dict[str, Any]:
    if res.matched_count == 0:
        raise HTTPException(404, "Document not found")
    return {"acknowledged": True, "matchedCount": res.matched_count, "modifiedCount": res.modified_count}


def distinct_categories(db: Database) -> List[str]:
    return [c for c in db.games.distinct("category") if isinstance(c, str) and c]


# Routes
@app.get("/")
def read_root():
    return {"message": "Game Zone API running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "✅ Connected" if db.ping() else "❌ Not Reachable",
        "database_name": db.name,
        "collections": [],
    }
    try:
        response["collections"] = db.collection_names()
    except PyMongoError as e:
        response["database"] = f"⚠️ Error: {str(e)[:80]}"
    return response


# Game Endpoints
@app.get("/games")
def list_games(db: Database = Depends(get_db)):
    docs = db.games.find_all(sort=NEWEST_FIRST, limit=LATEST_GAMES_LIMIT)
    return [serialize_doc(d) for d in docs]


@app.get("/search/games")
def search_games(title: Optional[str] = None, db: Database = Depends(get_db)):
    query = title_filter(title.strip()) if title and title.strip() else {}
    return [serialize_doc(d) for d in db.games.find_all(query, sort=NEWEST_FIRST)]


@app.get("/search")
def search(title: Optional[str] = None, db: Database = Depends(get_db)):
    if not title or not title.strip():
        raise HTTPException(400, "Search title is required")
    return [serialize_doc(d) for d in db.games.find_all(title_filter(title.strip()), sort=NEWEST_FIRST)]


@app.get("/games/category/{category}")
def games_by_category(category: str, db: Database = Depends(get_db)):
    if not category.strip():
        raise HTTPException(400, "Category is required")
    docs = db.games.find_all(category_filter(category.strip()), sort=NEWEST_FIRST)
    return [serialize_doc(d) for d in docs]


@app.get("/games/{game_id}")
def get_game(game_id: str, db: Database = Depends(get_db)):
    return serialize_doc(db.games.find_by_id(game_id))


@app.get("/categories")
def list_categories(db: Database = Depends(get_db)):
    return distinct_categories(db)


@app.get("/total-games")
def total_games(db: Database = Depends(get_db)):
    return {"count": db.games.count()}


@app.get("/total-users")
def total_users(db: Database = Depends(get_db)):
    return {"count": db.users.count()}


@app.post("/games", status_code=201)
def create_game(
    background_tasks: BackgroundTasks,
    payload: Optional[Dict[str, Any]] = Body(None),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    fields = {k: v for k, v in (payload or {}).items() if k != "_id"}
    doc = validate(GameSchema, fields).model_dump(exclude_none=True)
    doc["createdAt"] = datetime.now(timezone.utc)
    inserted_id = db.games.insert(doc)
    # The game is stored; notifications run after the response and cannot fail it
    background_tasks.add_task(notify_subscribers, db, mailer, doc, inserted_id, settings.site_url)
    return {"acknowledged": True, "insertedId": inserted_id}


@app.put("/games/{game_id}")
def update_game(game_id: str, payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)):
    fields = update_fields(payload)
    if "title" in fields and not (isinstance(fields["title"], str) and fields["title"].strip()):
        raise HTTPException(400, "Title must not be blank")
    return update_result(db.games.update_by_id(game_id, fields))


@app.delete("/games/{game_id}")
def delete_game(game_id: str, db: Database = Depends(get_db)):
    if db.games.delete_by_id(game_id) == 0:
        raise HTTPException(404, "Game not found")
    return {"ok": True}


# Ad Endpoints
@app.get("/ads")
def list_ads(db: Database = Depends(get_db)):
    return [serialize_doc(d) for d in db.ads.find_all(sort=NEWEST_FIRST)]


@app.get("/ads/{ad_id}")
def get_ad(ad_id: str, db: Database = Depends(get_db)):
    return serialize_doc(db.ads.find_by_id(ad_id))


@app.post("/ads", status_code=201)
def create_ad(payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)):
    ad = validate(AdSchema, payload)
    doc = ad.model_dump(exclude_none=True)
    doc["createdAt"] = datetime.now(timezone.utc)
    return {"insertedId": db.ads.insert(doc)}


@app.put("/ads/{ad_id}")
def update_ad(ad_id: str, payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)):
    fields = update_fields(payload)
    existing = db.ads.find_by_id(ad_id)
    # The merged ad must still satisfy the type-dependent required fields
    merged = validate(AdSchema, {**existing, **fields}).model_dump()
    fields = {k: merged.get(k, v) for k, v in fields.items()}
    return update_result(db.ads.update_by_id(ad_id, fields))


@app.delete("/ads/{ad_id}")
def delete_ad(ad_id: str, db: Database = Depends(get_db)):
    if db.ads.delete_by_id(ad_id) == 0:
        raise HTTPException(404, "Ad not found")
    return {"ok": True}


# Subscribers and users
@app.post("/subscribe", status_code=201)
def subscribe(payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)):
    body = validate(SubscriberSchema, payload)
    email = str(body.email).strip().lower()
    if db.subscribers.find_one({"email": email}):
        raise HTTPException(400, "Email already subscribed")
    try:
        inserted_id = db.subscribers.insert({"email": email, "subscribedAt": datetime.now(timezone.utc)})
    except DuplicateError:
        raise HTTPException(400, "Email already subscribed")
    return {"message": "Subscribed successfully", "insertedId": inserted_id}


@app.post("/users")
def create_user(payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)):
    body = validate(UserSchema, payload)
    email = str(body.email).strip().lower()
    existing = db.users.find_one({"email": email})
    if existing:
        return serialize_doc(existing)
    doc = {"name": body.name, "email": email, "createdAt": datetime.now(timezone.utc)}
    try:
        doc["_id"] = db.users.insert(doc)
    except DuplicateError:
        # Lost a race with a concurrent request for the same email
        return serialize_doc(db.users.find_one({"email": email}))
    return serialize_doc(doc)


# Uploads
@app.post("/upload")
def upload_images(
    images: Optional[List[UploadFile]] = File(None),
    uploader: MediaUploader = Depends(get_uploader),
    settings: Settings = Depends(get_settings),
):
    if not images:
        raise HTTPException(400, "No files uploaded")
    urls = []
    for image in images:
        path = None
        try:
            suffix = os.path.splitext(image.filename or "")[1]
            with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
                shutil.copyfileobj(image.file, tmp)
                path = tmp.name
            urls.append(uploader.upload(path, settings.upload_folder))
        except UploadError as e:
            logger.error("Upload of %s failed: %s", image.filename, e)
        except Exception:
            logger.exception("Upload of %s failed", image.filename)
        finally:
            if path:
                remove_quietly(path)
    return {"urls": urls}


@app.get("/sitemap.xml")
def sitemap(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    games = db.games.find_all(
        projection={"title": 1, "category": 1, "createdAt": 1},
        sort=NEWEST_FIRST,
    )
    xml = build_sitemap(settings.site_url, games, distinct_categories(db))
    return Response(content=xml, media_type="application/xml")


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    if not settings.database_url:
        logger.error("DATABASE_URL is not set")
        sys.exit(1)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
