"""Request body reading shared by the resource routes.

Routes accept either a JSON object or a multipart/urlencoded form. Form
fields named ``name[]`` are collected into lists; uploaded files are always
returned as lists keyed by the bare field name.
"""

import json
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List

from fastapi import Depends, Request
from starlette.datastructures import UploadFile

from repairdesk.core.exceptions import BadRequest

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


@dataclass
class RequestPayload:
    data: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, List[UploadFile]] = field(default_factory=dict)


async def read_payload(request: Request) -> RequestPayload:
    """Parse the body into plain fields and uploaded files."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        payload = RequestPayload()
        for key in set(form.keys()):
            values = form.getlist(key)
            name = key[:-2] if key.endswith("[]") else key
            uploads = [v for v in values if isinstance(v, UploadFile)]
            fields = [v for v in values if not isinstance(v, UploadFile)]
            if uploads:
                payload.files.setdefault(name, []).extend(uploads)
            if fields:
                if key.endswith("[]") or len(fields) > 1:
                    payload.data[name] = fields
                else:
                    payload.data[name] = fields[0]
        return payload

    body = await request.body()
    if not body.strip():
        return RequestPayload()
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise BadRequest("Malformed request body.")
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object.")
    return RequestPayload(data=data)


Payload = Annotated[RequestPayload, Depends(read_payload)]
