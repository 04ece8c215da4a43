# catalog_api/identity.py

from fastapi import Header
from pydantic import BaseModel
from typing import Optional
from catalog_api import config


class CurrentUser(BaseModel):
  id: str
  name: str


def get_current_user(
  x_user_id: Optional[str] = Header(None, description="Acting user id, anonymous when missing"),
  x_user_name: Optional[str] = Header(None, description="Display name stored with reviews")
  ) -> CurrentUser:
  """
  Resolves the acting user from request headers. Authentication itself is
  done in front of this API; requests without a user id are anonymous.
  """
  if not x_user_id or not x_user_id.strip():
    return CurrentUser(id=config.ANONYMOUS_USER_ID, name=config.ANONYMOUS_USER_NAME)
  user_id = x_user_id.strip()
  return CurrentUser(id=user_id, name=(x_user_name or "").strip() or user_id)
