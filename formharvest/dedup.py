"""
去重模块 (Dedup Engine)
======================

在入库时判断新会话的身份字段是否已存在于同一页面的某个已同步会话中。

规则:
    - 关键字段：角色属于 {aadhar, pan, name, email, phone} 的字段，
      同一角色出现多次时以最后一次为准
    - 候选会话没有任何关键字段时不视为重复
    - 只与 url 完全相同且 synced 为真的历史会话比较；只检查候选会话提供的键，
      历史会话可以有额外的键
"""

from typing import Dict, Iterable, Sequence

from formharvest.ir import KEY_ROLES, Session, ValidatedField
from formharvest.logger import get_logger

logger = get_logger(__name__)


def key_fields(fields: Iterable[ValidatedField]) -> Dict[str, str]:
    """提取关键字段映射 role → value（同一角色后出现者覆盖先出现者）。"""
    keys: Dict[str, str] = {}
    for field in fields:
        role = str(getattr(field.validation.role, "value", field.validation.role)).lower()
        if role in KEY_ROLES:
            keys[role] = field.value
    return keys


def is_duplicate(url: str, fields: Sequence[ValidatedField], history: Iterable[Session]) -> bool:
    """
    判断候选会话是否与历史中某个已同步会话重复。

    参数:
        url: 候选会话的页面 URL
        fields: 候选会话的已校验字段
        history: 存储中的历史会话

    返回:
        是否重复
    """
    candidate = key_fields(fields)
    if not candidate:
        return False

    for session in history:
        if not session.synced or session.url != url:
            continue
        existing = key_fields(session.fields)
        if all(existing.get(role) == value for role, value in candidate.items()):
            logger.info("Duplicate of synced session id=%s for %s", session.id, url)
            return True
    return False
