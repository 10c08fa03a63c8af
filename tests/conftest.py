"""
Pytest configuration and shared fixtures.
"""
import os
import sys
import pytest

# Add project root to path for imports
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from formharvest.config import reset_settings
from formharvest.extractors import FormExtractor, SoupDom
from formharvest.ir import FieldObservation
from formharvest.mapping import validate_field
from formharvest.store import SessionStore


SIGNUP_PAGE = """
<html>
  <head><title>Sign up</title></head>
  <body>
    <form id="signup">
      <input type="hidden" name="csrf" value="abc123">
      <label for="fullName">Full Name</label>
      <input type="text" id="fullName" name="name" value="Priya Sharma" required>
      <input type="email" name="email" value="priya@example.com">
      <input type="tel" name="phone" value="98765-43210">
      <input type="text" name="aadhar" value="1234 5678 9012">
      <input type="text" name="pan" value="abcde1234f">
      <input type="text" name="nickname" value="P">
      <input type="checkbox" name="terms" checked>
      <input type="submit" value="Register">
    </form>
  </body>
</html>
"""


@pytest.fixture(autouse=True)
def fresh_settings():
    """Reload settings around each test so env overrides do not leak."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def signup_html():
    return SIGNUP_PAGE


@pytest.fixture
def store():
    """An in-memory session store, closed after the test."""
    s = SessionStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def extract():
    """Extract observations from an HTML snippet with the stdlib parser."""
    def _extract(html, parser="html.parser"):
        return list(FormExtractor(SoupDom.from_html(html, parser=parser)).extract())
    return _extract


@pytest.fixture
def make_field():
    """Build a ValidatedField from name/value/type."""
    def _make(name, value, type="text"):
        return validate_field(FieldObservation(name=name, value=value, type=type))
    return _make
