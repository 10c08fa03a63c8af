"""
字段角色分类模块 (Field Role Classifier)
======================================

根据字段名称（不区分大小写的子串匹配）推断语义角色。规则按顺序自上而下
匹配，第一条命中的规则生效；email/phone 规则会先看声明类型，再看关键字。

规则表是纯数据，可以单独测试或在调用方扩展:

    rules = ROLE_RULES + (RoleRule(Role.TEXT, ("comment",)),)
    classify(observation, rules=rules)
"""

from dataclasses import dataclass
from typing import FrozenSet, Sequence, Tuple

from formharvest.ir import FieldObservation, FieldType, Role


@dataclass(frozen=True)
class RoleRule:
    """
    一条分类规则。

    属性:
        role: 命中时返回的角色
        keywords: 名称中包含任一关键字即命中
        types: 声明类型属于该集合时直接命中（先于关键字判断）
    """
    role: Role
    keywords: Tuple[str, ...]
    types: FrozenSet[str] = frozenset()

    def matches(self, name: str, field_type: str) -> bool:
        if field_type in self.types:
            return True
        lowered = name.lower()
        return any(keyword in lowered for keyword in self.keywords)


ROLE_RULES: Tuple[RoleRule, ...] = (
    RoleRule(Role.AADHAR, ("aadhar", "aadhaar", "uid", "unique id", "identity")),
    RoleRule(Role.PAN, ("pan", "permanent account number", "tax id")),
    RoleRule(Role.NAME, ("name", "first", "last", "full", "given", "surname")),
    RoleRule(Role.EMAIL, ("email", "e-mail", "mail"), frozenset({FieldType.EMAIL.value})),
    # tel is mapped to the phone display type during extraction; accept both
    RoleRule(Role.PHONE, ("phone", "mobile", "contact", "tel", "number"), frozenset({"tel", FieldType.PHONE.value})),
)


def classify(observation: FieldObservation, rules: Sequence[RoleRule] = ROLE_RULES) -> Role:
    """
    推断观测结果的语义角色；没有规则命中时返回 Role.TEXT。
    """
    name = observation.name or ""
    field_type = getattr(observation.type, "value", observation.type) or ""
    field_type = field_type.lower()
    for rule in rules:
        if rule.matches(name, field_type):
            return rule.role
    return Role.TEXT
