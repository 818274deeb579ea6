from datetime import datetime, timedelta, timezone
from jose import jwt
from passlib.context import CryptContext

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain, hashed):
    return pwd_context.verify(plain, hashed)

def hash_password(password):
    return pwd_context.hash(password)

def create_access_token(data: dict, secret_key: str, expires_delta: timedelta = None, algorithm: str = ALGORITHM):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)

def decode_token(token, secret_key: str, algorithm: str = ALGORITHM):
    return jwt.decode(token, secret_key, algorithms=[algorithm])
