"""
DOM 适配层 (DOM Adapter Module)
==============================

提取器只通过 DomAdapter 这组能力接口访问元素树：子元素、影子根、父元素、
属性、文本、前一个兄弟元素以及 label[for] 查找。这样遍历逻辑既可以运行在
BeautifulSoup 解析出的真实页面上，也可以运行在测试用的合成树上。

SoupDom 把声明式影子 DOM（<template shadowrootmode="open">）视为宿主元素
的影子根：它不出现在宿主的 children 中，只能通过 shadow_root() 到达。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from bs4 import BeautifulSoup, Tag

from formharvest.config import get_settings
from formharvest.logger import get_logger

logger = get_logger(__name__)

# Attribute names used by declarative shadow DOM (current and legacy spelling)
SHADOW_ROOT_ATTRS = ("shadowrootmode", "shadowroot")


class DomAdapter(ABC):
    """
    元素树能力接口。

    节点类型对提取器不透明，所有操作都经由适配器完成。
    """

    @property
    @abstractmethod
    def root(self) -> Any:
        """文档根节点。"""

    @abstractmethod
    def children(self, node: Any) -> List[Any]:
        """返回节点的直接元素子节点（不含影子根）。"""

    @abstractmethod
    def shadow_root(self, node: Any) -> Optional[Any]:
        """返回节点挂载的影子根；没有时返回 None。"""

    @abstractmethod
    def parent(self, node: Any) -> Optional[Any]:
        """返回父元素；到达文档顶端或影子根边界时返回 None。"""

    @abstractmethod
    def tag(self, node: Any) -> str:
        """返回小写标签名。"""

    @abstractmethod
    def attr(self, node: Any, name: str) -> Optional[str]:
        """返回属性值；属性不存在时返回 None。"""

    @abstractmethod
    def text(self, node: Any) -> str:
        """返回节点的文本内容。"""

    @abstractmethod
    def previous_element_sibling(self, node: Any) -> Optional[Any]:
        """返回紧邻的前一个兄弟元素。"""

    @abstractmethod
    def find_label_for(self, node: Any, control_id: str) -> Optional[Any]:
        """在 node 所在的树作用域中查找 for 属性等于 control_id 的 label。"""

    def has_attr(self, node: Any, name: str) -> bool:
        return self.attr(node, name) is not None

    def node_key(self, node: Any) -> Any:
        """
        遍历去重用的节点标识，默认为 id(node)。

        每次调用 children() 都返回新包装对象的适配器可以覆盖它，
        返回底层节点的稳定标识。
        """
        return id(node)


class SoupDom(DomAdapter):
    """基于 BeautifulSoup 的 DomAdapter 实现。"""

    def __init__(self, soup: BeautifulSoup):
        self._soup = soup

    @classmethod
    def from_html(cls, html: str, parser: Optional[str] = None) -> "SoupDom":
        """
        解析 HTML 文本并构造适配器。

        参数:
            html: 页面 HTML
            parser: BeautifulSoup 解析器名称；默认读取配置 HTML_PARSER
        """
        parser = parser or get_settings().HTML_PARSER
        soup = BeautifulSoup(html or "", parser)
        logger.debug("Parsed HTML (%d chars) with parser=%s", len(html or ""), parser)
        return cls(soup)

    @property
    def root(self) -> BeautifulSoup:
        return self._soup

    @staticmethod
    def _is_shadow_template(node: Any) -> bool:
        return (
            isinstance(node, Tag)
            and node.name == "template"
            and any(node.has_attr(a) for a in SHADOW_ROOT_ATTRS)
        )

    def children(self, node: Tag) -> List[Tag]:
        # Plain <template> content is inert
        if node.name == "template" and not self._is_shadow_template(node):
            return []
        return [
            child for child in node.children
            if isinstance(child, Tag) and not self._is_shadow_template(child)
        ]

    def shadow_root(self, node: Tag) -> Optional[Tag]:
        for child in node.children:
            if self._is_shadow_template(child):
                return child
        return None

    def parent(self, node: Tag) -> Optional[Tag]:
        parent = node.parent
        if parent is None or isinstance(parent, BeautifulSoup) or self._is_shadow_template(parent):
            return None
        return parent

    def tag(self, node: Tag) -> str:
        return (node.name or "").lower()

    def attr(self, node: Tag, name: str) -> Optional[str]:
        value = node.get(name)
        if value is None:
            return None
        # Multi-valued attributes (class, rel, ...) come back as lists
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def text(self, node: Tag) -> str:
        return node.get_text()

    def previous_element_sibling(self, node: Tag) -> Optional[Tag]:
        sibling = node.find_previous_sibling()
        return sibling if isinstance(sibling, Tag) else None

    def _scope(self, node: Tag) -> Tag:
        """返回节点所在的树作用域：最近的影子根，或整个文档。"""
        current = node
        while current.parent is not None:
            if self._is_shadow_template(current.parent):
                return current.parent
            current = current.parent
        return current

    def find_label_for(self, node: Tag, control_id: str) -> Optional[Tag]:
        scope = self._scope(node)
        for label in scope.find_all("label", attrs={"for": control_id}):
            if self._scope(label) is scope:
                return label
        return None
