"""
提取器基类模块 (Base Extractor Module)
=====================================

为所有提取器提供统一接口和错误处理。
"""
from abc import ABC, abstractmethod
from typing import Any, Iterator, Optional

from formharvest.extractors.dom import DomAdapter
from formharvest.ir import ExtractionResult, FieldObservation
from formharvest.logger import get_logger

logger = get_logger(__name__)


class BaseExtractor(ABC):
    """
    所有提取器的抽象基类。

    提供标准接口:
    - extract(): 抽象方法，子类必须实现，返回惰性的单次观测序列
    - safe_extract(): 包装方法，捕获异常并返回 ExtractionResult
    """

    def __init__(self, dom: DomAdapter):
        """
        初始化提取器。

        参数:
            dom: 元素树适配器
        """
        self.dom = dom

    @abstractmethod
    def extract(self, root: Optional[Any] = None) -> Iterator[FieldObservation]:
        """
        从 root 开始遍历并逐个产出观测结果。

        参数:
            root: 遍历起点；为 None 时使用文档根

        返回:
            惰性、有限、只能消费一次的 FieldObservation 序列
        """
        pass

    def safe_extract(self, root: Optional[Any] = None) -> ExtractionResult:
        """
        安全提取：捕获异常，防止调用方崩溃。

        没有任何可用控件时返回 success=False，这不是错误，只表示页面上没有数据。

        参数:
            root: 遍历起点；为 None 时使用文档根

        返回:
            ExtractionResult
        """
        try:
            fields = list(self.extract(root))
        except Exception as e:
            logger.error("Extraction failed: %s", e, exc_info=True)
            return ExtractionResult(success=False, fields=[], error=str(e))
        return ExtractionResult(success=len(fields) > 0, fields=fields)
