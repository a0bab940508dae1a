import os
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

# Clé partagée avec le service de session qui émet les tokens
SECRET_KEY = os.getenv("SECRET_KEY", "cle_de_dev_a_changer_en_prod")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": user_id, "exp": datetime.utcnow() + expires_delta}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def read_user_id(token: str) -> Optional[str]:
    # `sub` du token, ou None (signature invalide, expiré, pas de sub)
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")
