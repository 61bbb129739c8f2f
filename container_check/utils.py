from typing import Any, Optional

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from container_check.services.photo_service import PhotoFile


def success_resp(message: str, data: Any = None, status_code: int = 200):
    """
    Standardized Success Response
    """
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "success": True,
            "message": message,
            "data": data
        })
    )


def error_resp(message: str, status_code: int = 500, data: Optional[dict] = None):
    """
    Standardized Error Response
    """
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({
            "success": False,
            "message": message,
            "data": data
        })
    )


def read_uploads(files) -> list:
    """Turn FastAPI UploadFile objects into PhotoFile values."""
    result = []
    for f in files or []:
        result.append(PhotoFile(filename=f.filename or "photo", data=f.file.read(), content_type=f.content_type))
    return result


def parse_form_payload(model, raw: str):
    """Validate the JSON ``payload`` field of a multipart request."""
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
