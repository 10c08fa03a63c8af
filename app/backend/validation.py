"""
服务端校验模块 (Server-side Validation Module)
=============================================

远端收集器的请求模型与字段校验器。规则与客户端（formharvest.mapping.validator）
相互独立：电话号码在服务端接受 10–15 个数字/+/-/空格/括号字符，而客户端要求
恰好 10 位数字；两层各自保留自己的规则。

空字符串一律视为“未提供”，未知字段被忽略。
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ValidationError, field_validator

RE_AADHAR = re.compile(r"[0-9]{12}")
RE_PAN = re.compile(r"[A-Z]{5}[0-9]{4}[A-Z]")
RE_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
RE_PHONE = re.compile(r"[0-9+\-\s()]{10,15}")

IDENTITY_FIELDS = ("aadhar", "pan", "email", "phone")
MAX_TEXT_LENGTH = 255


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value == "":
        return None
    return value


def _check_pattern(value: Optional[str], pattern: re.Pattern, label: str) -> Optional[str]:
    if value is not None and pattern.fullmatch(value) is None:
        raise ValueError(f"{label} fails to match the required pattern")
    return value


class FormDataBase(BaseModel):
    """创建与更新共用的字段定义和校验规则。"""
    url: Optional[str] = None
    title: Optional[str] = None
    aadhar: Optional[str] = None
    pan: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    raw_data: Optional[Union[Dict[str, Any], List[Any]]] = None
    validation_status: Optional[Dict[str, Any]] = None

    class Config:
        extra = "ignore"

    @field_validator("url", "title", "aadhar", "pan", "name", "email", "phone", mode="before")
    @classmethod
    def _empty_as_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        parsed = urlparse(v)
        if not parsed.scheme or not (parsed.netloc or parsed.path):
            raise ValueError("url must be a valid uri")
        return v

    @field_validator("title", "name")
    @classmethod
    def _check_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_TEXT_LENGTH:
            raise ValueError(f"length must be less than or equal to {MAX_TEXT_LENGTH} characters long")
        return v

    @field_validator("aadhar")
    @classmethod
    def _check_aadhar(cls, v: Optional[str]) -> Optional[str]:
        return _check_pattern(v, RE_AADHAR, "aadhar")

    @field_validator("pan")
    @classmethod
    def _check_pan(cls, v: Optional[str]) -> Optional[str]:
        return _check_pattern(v, RE_PAN, "pan")

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and RE_EMAIL.fullmatch(v) is None:
            raise ValueError("email must be a valid email")
        return v

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_pattern(v, RE_PHONE, "phone")

    def present(self) -> Dict[str, Any]:
        """返回实际提供的字段（去掉 None）。"""
        return self.model_dump(exclude_none=True)


class FormDataCreate(FormDataBase):
    """POST 请求体：url 必填。"""
    url: str


class FormDataUpdate(FormDataBase):
    """PUT 请求体：所有字段可选。"""


class ListQuery(BaseModel):
    """列表查询参数：分页、过滤与排序。"""
    page: int = 1
    limit: int = 10
    url: Optional[str] = None
    aadhar: Optional[str] = None
    pan: Optional[str] = None
    email: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: Literal["created_at", "updated_at", "url", "name"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    class Config:
        extra = "ignore"

    @field_validator("page")
    @classmethod
    def _check_page(cls, v: int) -> int:
        if v < 1:
            raise ValueError("page must be greater than or equal to 1")
        return v

    @field_validator("limit")
    @classmethod
    def _check_limit(cls, v: int) -> int:
        if v < 1 or v > 100:
            raise ValueError("limit must be between 1 and 100")
        return v


def format_errors(exc: ValidationError) -> List[Dict[str, str]]:
    """把 pydantic 的错误列表转换为 [{field, message}]。"""
    details = []
    for error in exc.errors():
        details.append({
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", ""),
        })
    return details


def validate_aadhar(aadhar: Optional[str]) -> Dict[str, Any]:
    if not aadhar:
        return {"isValid": False, "message": "Aadhar number is required"}
    if RE_AADHAR.fullmatch(aadhar) is None:
        return {"isValid": False, "message": "Aadhar must be exactly 12 digits"}
    return {"isValid": True, "message": "Valid Aadhar number"}


def validate_pan(pan: Optional[str]) -> Dict[str, Any]:
    if not pan:
        return {"isValid": False, "message": "PAN is required"}
    if RE_PAN.fullmatch(pan) is None:
        return {"isValid": False, "message": "PAN must be in format: ABCDE1234F"}
    return {"isValid": True, "message": "Valid PAN"}


def validate_email(email: Optional[str]) -> Dict[str, Any]:
    if not email:
        return {"isValid": False, "message": "Email is required"}
    if RE_EMAIL.fullmatch(email) is None:
        return {"isValid": False, "message": "Invalid email format"}
    return {"isValid": True, "message": "Valid email"}


def validate_phone(phone: Optional[str]) -> Dict[str, Any]:
    if not phone:
        return {"isValid": False, "message": "Phone number is required"}
    if RE_PHONE.fullmatch(phone) is None:
        return {"isValid": False, "message": "Invalid phone number format"}
    return {"isValid": True, "message": "Valid phone number"}


FIELD_VALIDATORS = {
    "aadhar": validate_aadhar,
    "pan": validate_pan,
    "email": validate_email,
    "phone": validate_phone,
}


def build_validation_status(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """为每个提供了值的身份字段生成校验状态。"""
    return {
        field: FIELD_VALIDATORS[field](data[field])
        for field in IDENTITY_FIELDS
        if data.get(field)
    }
