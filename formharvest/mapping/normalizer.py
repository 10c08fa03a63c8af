import re

RE_ID_SEPARATORS = re.compile(r"[\s\-]")
RE_PHONE_SEPARATORS = re.compile(r"[\s\-()]")


def strip_id_separators(value: str) -> str:
    """去掉证件号中的空白和连字符，如 "1234 5678-9012" → "123456789012"。"""
    if value is None:
        return ""
    return RE_ID_SEPARATORS.sub("", value)


def strip_phone_separators(value: str) -> str:
    """去掉电话号码中的空白、连字符和括号。"""
    if value is None:
        return ""
    return RE_PHONE_SEPARATORS.sub("", value)


def normalize_pan(value: str) -> str:
    if value is None:
        return ""
    return value.upper()
