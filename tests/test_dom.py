import pytest

from filescout.workflows.dom import FrameAccessDenied, LiveDocument, iter_elements, open_shadow_root


PAGE = "https://example.com/docs/index.html"


def test_base_url_honours_base_element():
    doc = LiveDocument('<html><head><base href="/assets/"></head><body></body></html>', PAGE)
    assert doc.base_url == "https://example.com/assets/"
    assert LiveDocument("<p>x</p>", PAGE).base_url == PAGE


def test_iter_elements_does_not_enter_template_content():
    doc = LiveDocument(
        '<div id="host"><template shadowrootmode="open"><a href="/x.pdf">x</a></template></div>',
        PAGE,
    )
    names = [el.name for el in iter_elements(doc.soup)]
    assert "template" in names
    assert "a" not in names
    host = doc.soup.find(id="host")
    shadow = open_shadow_root(host)
    assert shadow is not None
    assert [el.name for el in iter_elements(shadow)] == ["a"]


def test_closed_shadow_root_is_not_open():
    doc = LiveDocument('<div id="host"><template shadowrootmode="closed"><a href="/x.pdf">x</a></template></div>')
    assert open_shadow_root(doc.soup.find(id="host")) is None


def test_load_frame_srcdoc_and_blank():
    doc = LiveDocument('<iframe id="a" srcdoc="<p>hi</p>"></iframe><iframe id="b" src="about:blank"></iframe>', PAGE)
    tree, base = doc.load_frame(doc.soup.find(id="a"), PAGE)
    assert tree.find("p").get_text() == "hi"
    assert base == PAGE
    tree, base = doc.load_frame(doc.soup.find(id="b"), PAGE)
    assert tree.find("p") is None
    assert base == PAGE


def test_load_frame_same_origin_uses_loader_once():
    calls = []

    def loader(url):
        calls.append(url)
        return "<a href='guide.pdf'>Guide</a>"

    doc = LiveDocument('<iframe src="/frames/inner.html"></iframe>', PAGE, frame_loader=loader)
    iframe = doc.soup.find("iframe")
    tree, base = doc.load_frame(iframe, doc.base_url)
    again, _ = doc.load_frame(iframe, doc.base_url)
    assert base == "https://example.com/frames/inner.html"
    assert tree is again
    assert calls == ["https://example.com/frames/inner.html"]
    doc.forget_frames()
    doc.load_frame(iframe, doc.base_url)
    assert len(calls) == 2


def test_load_frame_cross_origin_is_denied():
    doc = LiveDocument(
        '<iframe src="https://ads.example.net/frame.html"></iframe>',
        PAGE,
        frame_loader=lambda url: pytest.fail("cross-origin frame must not be loaded"),
    )
    with pytest.raises(FrameAccessDenied):
        doc.load_frame(doc.soup.find("iframe"), doc.base_url)


def test_load_frame_without_loader_is_denied():
    doc = LiveDocument('<iframe src="/frames/inner.html"></iframe>', PAGE)
    with pytest.raises(FrameAccessDenied):
        doc.load_frame(doc.soup.find("iframe"), doc.base_url)


def test_observe_delivers_batches_and_disconnects():
    doc = LiveDocument('<html><body><ul id="list"></ul></body></html>', PAGE)
    batches = []
    observation = doc.observe(batches.append)
    target = doc.soup.find(id="list")

    with doc.batch():
        doc.append_html(target, '<li><a href="/a.pdf">A</a></li>')
        doc.append_html(target, '<li><a href="/b.pdf">B</a></li>')
    assert len(batches) == 1
    assert [r.type for r in batches[0]] == ["childList", "childList"]

    link = target.find("a")
    doc.set_attribute(link, "href", "/c.pdf")
    assert batches[-1][0].attribute_name == "href"
    assert batches[-1][0].old_value == "/a.pdf"

    observation.disconnect()
    observation.disconnect()
    doc.remove(link)
    assert len(batches) == 2


def test_observe_attribute_filter():
    doc = LiveDocument('<html><body><a id="x" href="/a.pdf">A</a></body></html>', PAGE)
    batches = []
    doc.observe(batches.append, attribute_filter=("href",))
    link = doc.soup.find(id="x")
    doc.set_attribute(link, "class", "big")
    assert batches == []
    doc.remove_attribute(link, "href")
    assert batches[0][0].attribute_name == "href"
