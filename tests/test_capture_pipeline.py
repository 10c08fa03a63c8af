"""
End-to-end capture tests: HTML → extraction → validation → store.
"""
from formharvest.extractors import SoupDom
from formharvest.ir import Role
from formharvest.pipeline import MSG_NO_DATA, MSG_NO_VALID_DATA, capture, capture_html

URL = "https://example.com/signup"


def test_capture_stores_valid_fields(store, signup_html):
    result = capture_html(signup_html, URL, store=store)

    assert result.success is True
    assert result.message == "Found 6 form fields with valid data"
    assert [f.name for f in result.fields] == ["name", "email", "phone", "aadhar", "pan", "terms"]
    assert all(f.validation.is_valid for f in result.fields)
    roles = {f.name: f.validation.role for f in result.fields}
    assert roles["aadhar"] == Role.AADHAR
    assert roles["terms"] == Role.TEXT

    assert result.session is not None
    assert store.count() == 1
    stored = store.get(result.session.id)
    assert stored.url == URL
    assert stored.fields == result.fields


def test_capture_without_store(signup_html):
    result = capture_html(signup_html, URL)
    assert result.success is True
    assert result.session is None


def test_no_controls(store):
    result = capture_html("<html><body><p>Hello</p></body></html>", URL, store=store)
    assert result.success is False
    assert result.message == MSG_NO_DATA
    assert store.count() == 0


def test_only_invalid_fields(store):
    html = '<form><input name="aadhar" value="12345"><input name="email" value="not-an-email"></form>'
    result = capture_html(html, URL, store=store)
    assert result.success is False
    assert result.message == MSG_NO_VALID_DATA
    assert result.fields == []
    assert store.count() == 0


def test_repeat_capture_after_sync_is_duplicate(store, signup_html):
    first = capture_html(signup_html, URL, store=store)
    store.mark_synced(first.session.id)

    second = capture_html(signup_html, URL, store=store)
    assert second.success is True
    assert second.session.duplicate is True
    assert store.pending_sessions() == []


def test_same_data_on_other_page_is_not_duplicate(store, signup_html):
    first = capture_html(signup_html, URL, store=store)
    store.mark_synced(first.session.id)

    other = capture_html(signup_html, "https://example.com/profile", store=store)
    assert other.session.duplicate is False


def test_capture_subtree(store):
    html = (
        '<div id="a"><input name="email" value="a@b.co"></div>'
        '<div id="b"><input name="email" value="b@b.co"></div>'
    )
    dom = SoupDom.from_html(html, parser="html.parser")
    result = capture(dom, URL, store=store, root=dom.root.find(id="b"))
    assert [f.value for f in result.fields] == ["b@b.co"]


def test_shadow_dom_fields_captured(store):
    html = (
        '<html><body><x-signup><template shadowrootmode="open">'
        '<label>Email <input type="email" value="shadow@b.co"></label>'
        '</template></x-signup></body></html>'
    )
    result = capture_html(html, URL, store=store, parser="html.parser")
    assert result.success is True
    assert result.fields[0].value == "shadow@b.co"
    assert result.fields[0].validation.role == Role.EMAIL
