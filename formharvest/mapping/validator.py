"""
字段校验模块 (Field Validator)
=============================

按推断角色对字段值做格式校验，每个 (角色, 是否有效) 组合对应一条固定的
提示信息。校验失败的字段在入库前被丢弃，不会抛出异常。

客户端规则（本模块）与远端收集器的服务端规则（app.backend.validation）
是两套独立的校验器：例如电话号码在这里要求恰好 10 位数字，而服务端接受
10–15 个数字/+/-/空格/括号字符。
"""

import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from formharvest.ir import FieldObservation, FieldValidation, Role, ValidatedField
from formharvest.logger import get_logger
from formharvest.mapping.classifier import classify
from formharvest.mapping.normalizer import normalize_pan, strip_id_separators, strip_phone_separators

logger = get_logger(__name__)

RE_AADHAR = re.compile(r"[0-9]{12}")
RE_PAN = re.compile(r"[A-Z]{5}[0-9]{4}[A-Z]")
RE_NAME = re.compile(r"[a-zA-Z\s]+")
RE_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
RE_PHONE = re.compile(r"[0-9]{10}")

# role -> (valid message, invalid message)
MESSAGES: Dict[Role, Tuple[str, str]] = {
    Role.AADHAR: ("Valid Aadhar number", "Invalid Aadhar number (should be 12 digits)"),
    Role.PAN: (
        "Valid PAN number",
        "Invalid PAN number (should be 10 characters: 5 letters + 4 digits + 1 letter)",
    ),
    Role.NAME: ("Valid name", "Invalid name (should be at least 2 characters, letters only)"),
    Role.EMAIL: ("Valid email", "Invalid email format"),
    Role.PHONE: ("Valid phone number", "Invalid phone number (should be 10 digits)"),
    Role.TEXT: ("Valid text", "Empty field"),
}


def is_valid_aadhar(value: str) -> bool:
    return RE_AADHAR.fullmatch(strip_id_separators(value)) is not None


def is_valid_pan(value: str) -> bool:
    return RE_PAN.fullmatch(normalize_pan(value)) is not None


def is_valid_name(value: str) -> bool:
    trimmed = value.strip()
    return len(trimmed) >= 2 and RE_NAME.fullmatch(trimmed) is not None


def is_valid_email(value: str) -> bool:
    return RE_EMAIL.fullmatch(value) is not None


def is_valid_phone(value: str) -> bool:
    return RE_PHONE.fullmatch(strip_phone_separators(value)) is not None


def is_valid_text(value: str) -> bool:
    return len(value.strip()) > 0


VALIDATORS: Dict[Role, Callable[[str], bool]] = {
    Role.AADHAR: is_valid_aadhar,
    Role.PAN: is_valid_pan,
    Role.NAME: is_valid_name,
    Role.EMAIL: is_valid_email,
    Role.PHONE: is_valid_phone,
    Role.TEXT: is_valid_text,
}


def validate(observation: FieldObservation, role: Optional[Role] = None) -> FieldValidation:
    """
    校验单个观测结果。

    参数:
        observation: 待校验的观测结果
        role: 已推断的角色；为 None 时调用 classify 推断

    返回:
        FieldValidation（is_valid、role、message）
    """
    role = Role(role) if role is not None else classify(observation)
    value = observation.value or ""
    is_valid = VALIDATORS[role](value)
    valid_message, invalid_message = MESSAGES[role]
    return FieldValidation(
        is_valid=is_valid,
        role=role,
        message=valid_message if is_valid else invalid_message,
    )


def validate_field(observation: FieldObservation) -> ValidatedField:
    """返回附带校验结论的字段（无论是否有效）。"""
    verdict = validate(observation)
    return ValidatedField(**observation.model_dump(), validation=verdict)


def validate_observations(observations: Iterable[FieldObservation]) -> List[ValidatedField]:
    """
    校验一组观测结果，只保留有效字段，保持原有顺序。
    """
    validated: List[ValidatedField] = []
    for observation in observations:
        field = validate_field(observation)
        if field.validation.is_valid:
            validated.append(field)
        else:
            logger.debug(
                "Dropping field %r (role=%s): %s",
                field.name,
                field.validation.role,
                field.validation.message,
            )
    logger.info("Validation kept %d field(s)", len(validated))
    return validated
