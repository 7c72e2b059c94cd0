import os
import time
import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .database import get_store
from .store import Kind, RecordStore

# Loads .env
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is not set")

JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "15"))

bearer_scheme = HTTPBearer(auto_error=False)

# Hashes a raw (plain-text) password with bcrypt and returns the hash
def hash_password(raw_password: str) -> str:
    password_bytes = raw_password.encode("utf-8") # convert the password string to bytes
    salt = bcrypt.gensalt() # generate a random salt
    hashed_bytes = bcrypt.hashpw(password_bytes, salt) # hash the password
    return hashed_bytes.decode("utf-8")

# Verifies a raw password against a stored bcrypt hash
def verify_password(raw_password: str, hashed: str) -> bool:
    return bcrypt.checkpw(raw_password.encode("utf-8"), hashed.encode("utf-8"))

# Creates and returns a JWT containing the user's ID, display name, and expiration details
def generate_access_token(user_id: int, name: str) -> str:
    now = int(time.time())

    payload = {
        "sub": str(user_id),
        "name": name,
        "iat": now,
        "exp": now + (JWT_EXPIRES_MINUTES * 60),
        "typ": "access"
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")

# Verifies the bearer JWT, returns the authenticated user's record
async def get_current_user_dep(creds: HTTPAuthorizationCredentials = Depends(bearer_scheme), store: RecordStore = Depends(get_store)) -> dict:
    if creds is None or creds.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing bearer token")

    try:
        data = jwt.decode(creds.credentials, JWT_SECRET, algorithms=["HS256"])
        user_id = int(data.get("sub"))
    except (jwt.InvalidTokenError, TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid credentials")

    user = await store.get(Kind.USER, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="user not found")

    return user
