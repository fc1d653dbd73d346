from __future__ import annotations

import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel

_HTTP_URL = re.compile(r"^https?://\S+$", re.IGNORECASE)


def _check_http_url(value: str) -> str:
    if not _HTTP_URL.match(value):
        raise ValueError("Image must be a valid http(s) URL")
    return value


ImageUrl = Annotated[str, AfterValidator(_check_http_url)]


class ErrorResponse(BaseModel):
    detail: str
    code: str
