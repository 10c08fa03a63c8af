"""
表单字段提取器 (Form Field Extractor)
====================================

深度优先遍历元素树（包括嵌套的影子树），为每个可交互控件产出一个
FieldObservation。遍历使用显式栈而不是递归，深层嵌套的页面不会受到
解释器递归深度的限制。

跳过规则:
    - hidden/submit/button/reset/image 类型的控件永远不产出观测
    - 复选框总是产出 "true"/"false"
    - 未选中的单选框不产出观测
    - 值为空或仅含空白时不产出观测

名称解析优先级（第一个非空值生效）:
    name 属性 → id → placeholder → 关联 label 的文本 → 声明类型 → "text"
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

from formharvest.extractors.base import BaseExtractor
from formharvest.extractors.dom import DomAdapter, SoupDom
from formharvest.ir import FieldObservation, FieldType
from formharvest.logger import get_logger

logger = get_logger(__name__)

CONTROL_TAGS = frozenset({"input", "select", "textarea"})
SKIPPED_TYPES = frozenset({"hidden", "submit", "button", "reset", "image"})

# input[type] → display type; anything missing falls back to text
INPUT_TYPE_MAP: Dict[str, FieldType] = {
    "text": FieldType.TEXT,
    "email": FieldType.EMAIL,
    "password": FieldType.PASSWORD,
    "tel": FieldType.PHONE,
    "number": FieldType.NUMBER,
    "date": FieldType.DATE,
    "datetime-local": FieldType.DATETIME,
    "time": FieldType.TIME,
    "url": FieldType.URL,
    "search": FieldType.SEARCH,
    "checkbox": FieldType.CHECKBOX,
    "radio": FieldType.RADIO,
    "file": FieldType.FILE,
    "color": FieldType.COLOR,
    "range": FieldType.RANGE,
}


class FormExtractor(BaseExtractor):
    """
    表单控件提取器。

    用法:
        dom = SoupDom.from_html(html)
        fields = list(FormExtractor(dom).extract())
    """

    def __init__(self, dom: DomAdapter):
        super().__init__(dom)

    @classmethod
    def from_html(cls, html: str, parser: Optional[str] = None) -> "FormExtractor":
        return cls(SoupDom.from_html(html, parser=parser))

    # -- traversal -----------------------------------------------------------

    def extract(self, root: Optional[Any] = None) -> Iterator[FieldObservation]:
        dom = self.dom
        start = dom.root if root is None else root
        stack: List[Any] = [start]
        # key -> node; holding the node keeps its id() from being reused
        visited: Dict[Any, Any] = {}

        while stack:
            node = stack.pop()
            key = dom.node_key(node)
            if key in visited:
                continue
            visited[key] = node

            if dom.tag(node) in CONTROL_TAGS:
                observation = self.extract_field(node)
                if observation is not None:
                    yield observation

            # Pushed last so the shadow tree is visited before light children
            stack.extend(reversed(dom.children(node)))
            shadow = dom.shadow_root(node)
            if shadow is not None:
                stack.append(shadow)

        logger.debug("Traversal complete: %d nodes visited", len(visited))

    # -- per-control extraction ---------------------------------------------

    def declared_type(self, node: Any) -> str:
        """
        返回控件的声明类型，与浏览器 element.type 一致:
        input 取 type 属性（缺省为 text），select 为 select-one/select-multiple，
        textarea 为 textarea。
        """
        tag = self.dom.tag(node)
        if tag == "select":
            return "select-multiple" if self.dom.has_attr(node, "multiple") else "select-one"
        if tag == "textarea":
            return "textarea"
        raw = (self.dom.attr(node, "type") or "").strip().lower()
        return raw or "text"

    def field_type(self, node: Any) -> FieldType:
        tag = self.dom.tag(node)
        if tag == "select":
            return FieldType.SELECT
        if tag == "textarea":
            return FieldType.TEXTAREA
        return INPUT_TYPE_MAP.get(self.declared_type(node), FieldType.TEXT)

    def extract_field(self, node: Any) -> Optional[FieldObservation]:
        """
        从单个控件提取观测结果；不满足条件时返回 None。
        """
        dom = self.dom
        tag = dom.tag(node)
        declared = self.declared_type(node)

        if declared in SKIPPED_TYPES:
            logger.debug("Skipping %s control of type %s", tag, declared)
            return None

        if declared == "checkbox":
            value = "true" if dom.has_attr(node, "checked") else "false"
        elif declared == "radio":
            if not dom.has_attr(node, "checked"):
                return None
            # Browsers report "on" for a radio without a value attribute
            value = dom.attr(node, "value")
            if value is None:
                value = "on"
        elif tag == "select":
            value = self._selected_value(node)
        elif tag == "textarea":
            value = dom.text(node)
        else:
            value = dom.attr(node, "value") or ""

        if not value or not value.strip():
            return None

        return FieldObservation(
            name=self.resolve_name(node),
            value=value.strip(),
            type=self.field_type(node),
            element_id=dom.attr(node, "id") or "",
            placeholder=dom.attr(node, "placeholder") or "",
            required=dom.has_attr(node, "required"),
        )

    def _options(self, select: Any) -> List[Any]:
        options: List[Any] = []
        for child in self.dom.children(select):
            tag = self.dom.tag(child)
            if tag == "option":
                options.append(child)
            elif tag == "optgroup":
                options.extend(c for c in self.dom.children(child) if self.dom.tag(c) == "option")
        return options

    def _option_value(self, option: Any) -> str:
        value = self.dom.attr(option, "value")
        if value is None:
            value = " ".join(self.dom.text(option).split())
        return value

    def _selected_value(self, select: Any) -> str:
        options = self._options(select)
        for option in options:
            if self.dom.has_attr(option, "selected"):
                return self._option_value(option)
        # A single-choice select shows its first option when none is marked
        if options and not self.dom.has_attr(select, "multiple"):
            return self._option_value(options[0])
        return ""

    # -- name resolution -----------------------------------------------------

    def resolve_name(self, node: Any) -> str:
        dom = self.dom
        for candidate in (
            dom.attr(node, "name"),
            dom.attr(node, "id"),
            dom.attr(node, "placeholder"),
        ):
            if candidate:
                return candidate

        label = self.find_label(node)
        if label is not None:
            text = dom.text(label).strip()
            if text:
                return text

        return self.declared_type(node) or "text"

    def find_label(self, node: Any) -> Optional[Any]:
        """
        查找与控件关联的 label:
        1. for 属性等于控件 id 的 label
        2. 最近的祖先 label（到 body 为止）
        3. 紧邻的前一个兄弟 label
        """
        dom = self.dom
        control_id = dom.attr(node, "id")
        if control_id:
            label = dom.find_label_for(node, control_id)
            if label is not None:
                return label

        parent = dom.parent(node)
        while parent is not None and dom.tag(parent) != "body":
            if dom.tag(parent) == "label":
                return parent
            parent = dom.parent(parent)

        sibling = dom.previous_element_sibling(node)
        if sibling is not None and dom.tag(sibling) == "label":
            return sibling
        return None
