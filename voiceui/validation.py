"""请求校验：planner / 转写请求的输入检查与清洗"""

import json
import re
from typing import Any, Dict, Iterable, List, Optional

import pydantic
from pydantic import BaseModel, Field, field_validator

from .errors import ValidationError

MAX_QUERY_LENGTH = 1000
MAX_CONTEXT_CHARS = 50000
MAX_AUDIO_BYTES = 25 * 1024 * 1024
MAX_SANITIZED_LENGTH = 10000

_TAG_CHARS_RE = re.compile(r"[<>]")
_JS_URL_RE = re.compile(r"javascript:", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"data:", re.IGNORECASE)


def sanitize_string(text: str) -> str:
    """去掉尖括号和 javascript:/data: 前缀，截断到 10000 字符"""
    text = _TAG_CHARS_RE.sub("", text)
    text = _JS_URL_RE.sub("", text)
    text = _DATA_URL_RE.sub("", text)
    return text.strip()[:MAX_SANITIZED_LENGTH]


class PlanRequest(BaseModel):
    """发送给 planner 的请求"""
    user_query: str = Field(min_length=1, max_length=MAX_QUERY_LENGTH)
    dom_context: List[Dict[str, Any]]

    @field_validator("user_query")
    @classmethod
    def _clean_query(cls, value: str) -> str:
        value = sanitize_string(value)
        if not value:
            raise ValueError("User query cannot be empty")
        return value

    @field_validator("dom_context")
    @classmethod
    def _limit_context(cls, value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if len(json.dumps(value)) >= MAX_CONTEXT_CHARS:
            raise ValueError("DOM context too large")
        return value


class TranscribeRequest(BaseModel):
    """发送给转写服务的请求"""
    audio: bytes
    filename: str = "recording.webm"
    content_type: str = "audio/webm"
    language: Optional[str] = Field(default=None, max_length=10)

    @field_validator("audio")
    @classmethod
    def _limit_audio(cls, value: bytes) -> bytes:
        if not value:
            raise ValueError("No audio file provided")
        if len(value) > MAX_AUDIO_BYTES:
            raise ValueError("File size must be less than 25MB")
        return value

    @field_validator("content_type")
    @classmethod
    def _audio_type(cls, value: str, info) -> str:
        filename = info.data.get("filename") or ""
        if not (value.startswith("audio/") or filename.endswith(".webm")):
            raise ValueError("File must be an audio file")
        return value

    @field_validator("language")
    @classmethod
    def _clean_language(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return sanitize_string(value) or None


def _validate(model, **data):
    try:
        return model(**data)
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid input", details=e.errors(include_url=False)) from e


def validate_plan_request(user_query: str, dom_context: List[Dict[str, Any]]) -> PlanRequest:
    return _validate(PlanRequest, user_query=user_query, dom_context=dom_context)


def validate_transcribe_request(
    audio: bytes,
    filename: str = "recording.webm",
    content_type: str = "audio/webm",
    language: Optional[str] = None,
) -> TranscribeRequest:
    return _validate(
        TranscribeRequest,
        audio=audio,
        filename=filename,
        content_type=content_type,
        language=language,
    )


def validate_origin(origin: Optional[str], allowed: Iterable[str], development: bool = False) -> bool:
    """开发模式放行所有来源，否则只放行白名单"""
    if development:
        return True
    return bool(origin) and origin in set(allowed)


def cors_headers(origin: Optional[str], allowed: Iterable[str]) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Max-Age": "86400",
    }
    if origin and origin in set(allowed):
        headers["Access-Control-Allow-Origin"] = origin
    return headers
