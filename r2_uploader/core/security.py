import secrets

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from r2_uploader.config import BASIC_AUTH_PASS, BASIC_AUTH_USER

_basic = HTTPBasic(auto_error=False)

UNAUTHORIZED_HEADERS = {"WWW-Authenticate": 'Basic realm="Restricted"'}


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def require_basic_auth(credentials: HTTPBasicCredentials | None = Depends(_basic)) -> None:
    """Gate a route behind HTTP basic auth when both credentials are configured."""
    if not (BASIC_AUTH_USER and BASIC_AUTH_PASS):
        return
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized", headers=UNAUTHORIZED_HEADERS)
    # Compare both halves so timing does not reveal which one was wrong.
    user_ok = _matches(credentials.username, BASIC_AUTH_USER)
    pass_ok = _matches(credentials.password, BASIC_AUTH_PASS)
    if not (user_ok and pass_ok):
        raise HTTPException(status_code=401, detail="Unauthorized", headers=UNAUTHORIZED_HEADERS)
