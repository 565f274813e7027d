from fastapi import Header, HTTPException
from jose import JWTError, jwt

from checkout_gateway.config import get_config
from checkout_gateway.database import SessionLocal
from checkout_gateway.models import User


def get_current_user(authorization: str = Header(...)) -> User:
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("not a bearer token")
        claims = jwt.decode(
            token,
            get_config().jwt_secret.get_secret_value(),
            algorithms=["HS256"],
        )
        user_id = int(claims["sub"])
    except (ValueError, KeyError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")

    db = SessionLocal()
    try:
        user = db.get(User, user_id)
    finally:
        db.close()

    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or missing token")
    return user
