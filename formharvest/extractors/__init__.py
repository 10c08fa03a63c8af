"""
Extractors module for harvesting form fields from page element trees.

Provides:
- DomAdapter: capability interface the traversal runs against
- SoupDom: BeautifulSoup-backed adapter with declarative shadow roots
- BaseExtractor: Abstract base class with standard interface and error handling
- FormExtractor: depth-first form control extractor
"""

from formharvest.extractors.dom import DomAdapter, SoupDom
from formharvest.extractors.base import BaseExtractor
from formharvest.extractors.form_extractor import FormExtractor

__all__ = [
    "DomAdapter",
    "SoupDom",
    "BaseExtractor",
    "FormExtractor",
]
