import logging
import os
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Depends, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from . import core
from .core import AlreadyExists, Forbidden, InvalidOperation, NotFound, Page, SocialError
from .core.paging import DEFAULT_LIMIT, MAX_LIMIT
from .database import engine, get_store
from .models import Base
from .store import Kind, RecordStore
from .auth import hash_password, verify_password, generate_access_token, get_current_user_dep

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create tables on startup (async engine + sync-bridge)
async def init_models():
    async with engine.begin() as conn:
        # run_sync lets us call the synchronous create_all() using this async connection
        await conn.run_sync(Base.metadata.create_all)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    yield

app = FastAPI(lifespan=lifespan)

# CORS configuration
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN")
if not FRONTEND_ORIGIN:
    raise RuntimeError("FRONTEND_ORIGIN is not set in environment variables.")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_ORIGIN],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Relationship-layer conditions -> HTTP status codes
ERROR_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    InvalidOperation: status.HTTP_400_BAD_REQUEST,
    AlreadyExists: status.HTTP_409_CONFLICT,
}

@app.exception_handler(SocialError)
async def social_error_handler(request: Request, exc: SocialError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, type(exc).__name__)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})

# ---- Pydantic models ----
class RegisterIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=72) # bcrypt only uses the first 72 bytes

class LoginIn(BaseModel):
    email: str
    password: str

class ProfileIn(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=200)

# Content length is checked after trimming by core.clean_content
class PostIn(BaseModel):
    content: str
    image: str = Field("", max_length=255)

class PostUpdate(BaseModel):
    content: str

class CommentIn(BaseModel):
    content: str
    post_id: int
    parent_comment_id: Optional[int] = None

class CommentUpdate(BaseModel):
    content: str

# Query parameters shared by the listing routes
def paging(page: int = Query(1, ge=1), limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)) -> tuple[int, int]:
    return page, limit

def paged(result: Page, key: str, total_key: str) -> dict:
    return {key: result.items, "currentPage": result.page, "totalPages": result.total_pages, total_key: result.total}

# --- Auth routes ---
@app.post("/auth/register", status_code=201)
async def register(payload: RegisterIn, store: RecordStore = Depends(get_store)):
    u = await core.register_user(store, payload.name, payload.email, hash_password(payload.password))
    return {"success": True, "data": core.public_user(u)}

@app.post("/auth/login")
async def login(payload: LoginIn, store: RecordStore = Depends(get_store)):
    u = await core.find_by_email(store, payload.email)
    if not u or not verify_password(payload.password, u["password_hash"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid credentials")

    token = generate_access_token(user_id=u["id"], name=u["name"])
    return {"access_token": token, "token_type": "Bearer"}

@app.get("/whoami")
async def whoami(me: dict = Depends(get_current_user_dep)):
    return core.public_user(me)

# ---- Users ----
@app.get("/users")
async def get_all_users(pages: tuple[int, int] = Depends(paging), store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return paged(await core.list_users(store, me["id"], *pages), "users", "totalUsers")

@app.put("/users/profile")
async def update_profile(payload: ProfileIn, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    u = await core.update_profile(store, me["id"], name=payload.name, bio=payload.bio)
    return {"success": True, "user": core.public_user(u)}

@app.get("/users/{user_id}")
async def get_user(user_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    profile = await core.get_profile(store, user_id)
    profile["user"]["iFollow"] = user_id in me["following"]
    profile["user"]["follows"] = user_id in me["followers"]
    return profile

@app.post("/users/{user_id}/follow")
async def follow_user(user_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    await core.follow(store, me["id"], user_id)
    return {"success": True, "detail": "successfully followed"}

@app.delete("/users/{user_id}/follow")
async def unfollow_user(user_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    await core.unfollow(store, me["id"], user_id)
    return {"success": True, "detail": "successfully unfollowed"}

@app.get("/users/{user_id}/followers")
async def followers(user_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return {"followers": await core.list_followers(store, user_id)}

@app.get("/users/{user_id}/following")
async def following(user_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return {"following": await core.list_following(store, user_id)}

# ---- Posts ----
@app.post("/posts", status_code=201)
async def create_post(payload: PostIn, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    p = await core.create_post(store, me["id"], payload.content, payload.image)
    return {"success": True, "post": p}

@app.get("/posts")
async def get_posts(feed: str = Query("all"), pages: tuple[int, int] = Depends(paging), store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return paged(await core.list_posts(store, me["id"], feed, *pages), "posts", "totalPosts")

@app.get("/posts/user/{user_id}")
async def user_posts(user_id: int, pages: tuple[int, int] = Depends(paging), store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return paged(await core.list_user_posts(store, user_id, *pages), "posts", "totalPosts")

@app.get("/posts/{post_id}")
async def get_post(post_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return {"post": await core.get_post(store, post_id)}

@app.put("/posts/{post_id}")
async def update_post(post_id: int, payload: PostUpdate, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return {"success": True, "post": await core.update_post(store, me["id"], post_id, payload.content)}

@app.delete("/posts/{post_id}")
async def delete_post(post_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    await core.delete_post(store, me["id"], post_id)
    return {"success": True, "detail": "post deleted"}

@app.post("/posts/{post_id}/like")
async def like_post(post_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    state = await core.toggle_like(store, me["id"], post_id, Kind.POST)
    return {"liked": state.liked, "like_count": state.like_count}

# ---- Comments ----
@app.post("/comments", status_code=201)
async def create_comment(payload: CommentIn, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    c = await core.create_comment(store, me["id"], payload.post_id, payload.content, payload.parent_comment_id)
    return {"success": True, "comment": c}

@app.get("/comments/post/{post_id}")
async def post_comments(post_id: int, pages: tuple[int, int] = Depends(paging), store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return paged(await core.list_comments(store, post_id, *pages), "comments", "totalComments")

@app.get("/comments/{comment_id}")
async def get_comment(comment_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return {"comment": await core.get_comment(store, comment_id)}

@app.put("/comments/{comment_id}")
async def update_comment(comment_id: int, payload: CommentUpdate, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return {"success": True, "comment": await core.update_comment(store, me["id"], comment_id, payload.content)}

@app.delete("/comments/{comment_id}")
async def delete_comment(comment_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    await core.delete_comment(store, me["id"], comment_id)
    return {"success": True, "detail": "comment deleted"}

@app.post("/comments/{comment_id}/like")
async def like_comment(comment_id: int, store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    state = await core.toggle_like(store, me["id"], comment_id, Kind.COMMENT)
    return {"liked": state.liked, "like_count": state.like_count}

@app.get("/comments/{comment_id}/replies")
async def comment_replies(comment_id: int, pages: tuple[int, int] = Depends(paging), store: RecordStore = Depends(get_store), me: dict = Depends(get_current_user_dep)):
    return paged(await core.list_replies(store, comment_id, *pages), "replies", "totalReplies")
