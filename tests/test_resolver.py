from bs4 import BeautifulSoup

from filescout.workflows.resolver import FilenameResolver, page_heading, resolve_filename, FilenameContext


def _anchor(html: str, anchor_id: str = "target"):
    soup = BeautifulSoup(html, "lxml")
    return soup, soup.find(id=anchor_id)


def test_title_attribute_wins():
    soup, a = _anchor('<a id="target" href="/get/1" title="Q3 Budget">Download</a>')
    assert resolve_filename(a, "https://example.com/get/1", soup) == "Q3 Budget"


def test_size_label_title_is_skipped():
    soup, a = _anchor('<a id="target" href="/get/1" title="12 MB">Annual plan</a>')
    assert resolve_filename(a, "https://example.com/get/1", soup) == "Annual plan"


def test_name_like_attribute():
    soup, a = _anchor('<a id="target" href="/d/9" data-filename="invoice-2024.pdf">Download</a>')
    assert resolve_filename(a, "https://example.com/d/9", soup) == "invoice-2024.pdf"


def test_aria_label_when_text_is_empty():
    soup, a = _anchor('<a id="target" href="/d/9" aria-label="Setup guide"><span></span></a>')
    assert resolve_filename(a, "https://example.com/d/9", soup) == "Setup guide"


def test_query_parameter_underscores_become_spaces():
    soup, a = _anchor('<a id="target" href="/get?file=user_manual-v2"><span></span></a>')
    assert resolve_filename(a, "https://example.com/get?file=user_manual-v2", soup) == "user manual v2"


def test_nearby_heading():
    html = '<div class="card"><h3>Tax form 1040</h3><p><a id="target" href="/dl/5">Download</a></p></div>'
    soup, a = _anchor(html)
    assert resolve_filename(a, "https://example.com/dl/5", soup) == "Tax form 1040"


def test_nearby_titled_element():
    html = '<li><span class="item-title">Brand assets</span><a id="target" href="/dl/6">Get</a></li>'
    soup, a = _anchor(html)
    assert resolve_filename(a, "https://example.com/dl/6", soup) == "Brand assets"


def test_document_title_without_site_suffix():
    html = (
        "<html><head><title>Release Notes - Example Corp</title></head>"
        '<body><a id="target" href="/dl/1">Download</a></body></html>'
    )
    soup, a = _anchor(html)
    assert resolve_filename(a, "https://example.com/dl/1", soup) == "Release Notes"


def test_page_h1_preferred_over_title():
    html = (
        "<html><head><title>Ignored | Example</title></head>"
        '<body><main><h1>Product sheet</h1></main><section><div><p><span>'
        '<a id="target" href="/dl/1">Download</a></span></p></div></section></body></html>'
    )
    soup, a = _anchor(html)
    ctx = FilenameContext(anchor=a, url="https://example.com/dl/1", page=soup)
    assert page_heading(ctx) == "Product sheet"


def test_url_segment_then_literal_fallback():
    soup, a = _anchor('<a id="target" href="/files/q4-summary">Download</a>')
    assert resolve_filename(a, "https://example.com/files/q4-summary", soup) == "q4-summary"
    soup, a = _anchor('<a id="target" href="/">Download</a>')
    assert resolve_filename(a, "https://example.com/", soup) == "download"


def test_custom_rule_chain():
    soup, a = _anchor('<a id="target" href="/x">Something</a>')
    resolver = FilenameResolver(rules=[lambda ctx: None, lambda ctx: "chosen"], fallback="fallback")
    assert resolver.resolve(a, "https://example.com/x", soup) == "chosen"
    assert FilenameResolver(rules=[], fallback="fallback").resolve(a, "https://example.com/x") == "fallback"
