from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Optional

_request_id: ContextVar[str] = ContextVar("_request_id", default="-")

# Mobile clients may send their own id so a failed plan can be traced end to end
_CLIENT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{6,64}$")

def new_request_id(incoming: Optional[str] = None) -> str:
    if incoming and _CLIENT_ID_RE.match(incoming):
        rid = incoming
    else:
        rid = uuid.uuid4().hex[:12]
    _request_id.set(rid)
    return rid

def get_request_id() -> str:
    return _request_id.get()
