import time
from datetime import datetime, timedelta, timezone

from jose import jwt

JWT_SECRET = "test-jwt-secret"
# 12:00 in Riyadh
T0 = datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def advance(self, seconds: int) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def make_token(user_id, email=None, secret=JWT_SECRET, audience="authenticated", expires_in=3600):
    issued = int(time.time())
    claims = {
        "sub": str(user_id),
        "email": email or f"{user_id}@example.com",
        "aud": audience,
        "role": "authenticated",
        "iat": issued,
        "exp": issued + expires_in,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_header(user_id, **kwargs):
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}
