import re

from filescout.workflows.candidates import ResourceCandidate
from filescout.workflows.dom import LiveDocument
from filescout.workflows.scanner import DocumentScanner, scan_document
from filescout.workflows.scout_config import UNKNOWN_EXTENSION

PAGE = "https://example.com/page/"


def _scan(html: str, url: str = PAGE, **kwargs):
    return scan_document(LiveDocument(html, url, **kwargs))


def _by_url(candidates):
    return {c.url: c for c in candidates}


def test_direct_links_and_skipped_hrefs():
    html = """
    <a href="/files/report.pdf">Report</a>
    <a href="#top">Top</a>
    <a href="JavaScript:void(0)">js</a>
    <a href="mailto:someone@example.com">mail</a>
    <a href="">empty</a>
    <map><area href="/maps/region.PNG"></map>
    """
    found = _scan(html)
    assert [c.url for c in found] == [
        "https://example.com/files/report.pdf",
        "https://example.com/maps/region.PNG",
    ]
    report = found[0]
    assert report.filename == "report.pdf"
    assert report.extension == "pdf"
    assert report.is_inferred_download is False
    assert found[1].extension == "png"


def test_images_src_and_srcset():
    html = """
    <img src="data:image/png;base64,AAAA">
    <img src="/img/logo.PNG" srcset="/img/logo@2x.png 2x, /img/logo.PNG 1x">
    """
    found = _scan(html)
    assert [c.url for c in found] == [
        "https://example.com/img/logo.PNG",
        "https://example.com/img/logo@2x.png",
    ]
    assert all(c.extension == "png" for c in found)


def test_media_and_embeds():
    html = """
    <source src="/stray.ogg"></source>
    <video src="/v/clip.mp4"><source src="/v/clip.webm"></source></video>
    <audio><source src="/a/song.mp3"></source></audio>
    <object data="/docs/manual.pdf"></object>
    <embed src="/fonts/brand.woff2"></embed>
    """
    urls = [c.url for c in _scan(html)]
    assert "https://example.com/stray.ogg" not in urls
    assert urls == [
        "https://example.com/v/clip.mp4",
        "https://example.com/v/clip.webm",
        "https://example.com/a/song.mp3",
        "https://example.com/docs/manual.pdf",
        "https://example.com/fonts/brand.woff2",
    ]


def test_unsupported_extensions_are_ignored():
    found = _scan('<img src="/pixel.php"><a href="/index.html">Home</a>')
    assert found == []


def test_download_attribute_names_the_file():
    found = _scan('<a href="/blob/123" download="notes.txt">Notes</a>')
    assert len(found) == 1
    c = found[0]
    assert c.url == "https://example.com/blob/123"
    assert c.filename == "notes.txt"
    assert c.extension == "txt"
    assert c.is_inferred_download is True


def test_download_intent_signals():
    html = """
    <a href="/download?id=3">Quarterly numbers</a>
    <a href="/api/v1/item/77">Export CSV</a>
    <a class="btn download-btn" href="/item/88">Brochure</a>
    <a data-action="download" href="/item/99">Price list</a>
    <a href="/about">About us</a>
    """
    found = _by_url(_scan(html))
    assert set(found) == {
        "https://example.com/download?id=3",
        "https://example.com/api/v1/item/77",
        "https://example.com/item/88",
        "https://example.com/item/99",
    }
    assert found["https://example.com/download?id=3"].filename == "Quarterly numbers"
    assert found["https://example.com/api/v1/item/77"].filename == "Export CSV"
    assert found["https://example.com/item/88"].filename == "Brochure"
    assert found["https://example.com/item/99"].filename == "Price list"
    assert all(c.extension == UNKNOWN_EXTENSION for c in found.values())
    assert all(c.is_inferred_download for c in found.values())


def test_dedup_keeps_one_candidate_per_url_last_write_wins():
    html = """
    <a href="/files/report">Annual report</a>
    <a href="https://EXAMPLE.com:443/files/report">Summary</a>
    <a href="/files/a.pdf">A</a>
    """
    found = _scan(html)
    assert [c.url for c in found] == ["https://example.com/files/report", "https://example.com/files/a.pdf"]
    assert found[0].filename == "Summary"


def test_inferred_never_replaces_direct_candidate():
    found = {}
    direct = ResourceCandidate(url="https://example.com/x", filename="x.pdf", extension="pdf")
    inferred = ResourceCandidate(
        url="https://example.com/x", filename="Thing", extension=UNKNOWN_EXTENSION, is_inferred_download=True
    )
    DocumentScanner._record(found, direct)
    DocumentScanner._record(found, inferred)
    assert found["https://example.com/x"] is direct
    newer = ResourceCandidate(url="https://example.com/x", filename="y.pdf", extension="pdf")
    DocumentScanner._record(found, newer)
    assert found["https://example.com/x"] is newer


def test_scan_is_idempotent_and_candidates_are_well_formed():
    html = """
    <a href="/files/report">Report</a>
    <a href="/files/Deck.PPTX">Deck</a>
    <img src="/i/a.JPG" srcset="/i/a-2x.jpg 2x">
    <a class="download" href="/get/7"></a>
    """
    doc = LiveDocument(html, PAGE)
    scanner = DocumentScanner()
    first = [c.to_dict() for c in scanner.scan(doc)]
    second = [c.to_dict() for c in scanner.scan(doc)]
    assert first == second
    for item in first:
        assert item["filename"]
        assert re.fullmatch(r"[a-z0-9]+", item["extension"])
        assert item["selected"] is False
    assert len({item["url"] for item in first}) == len(first)


def test_open_shadow_roots_are_scanned_closed_are_not():
    html = """
    <div id="open-host">
      <template shadowrootmode="open">
        <a href="/files/shadow.pdf">S</a>
        <div><template shadowrootmode="open"><img src="/img/deep.png"></template></div>
      </template>
    </div>
    <div id="closed-host">
      <template shadowrootmode="closed"><a href="/files/hidden.pdf">H</a></template>
    </div>
    """
    urls = [c.url for c in _scan(html)]
    assert "https://example.com/files/shadow.pdf" in urls
    assert "https://example.com/img/deep.png" in urls
    assert "https://example.com/files/hidden.pdf" not in urls


def test_srcdoc_and_same_origin_frames_are_scanned():
    frames = {"https://example.com/frames/inner.html": '<a href="docs/guide.pdf">Guide</a>'}
    html = """
    <iframe srcdoc="<a href='/files/inner.zip'>Z</a>"></iframe>
    <iframe src="/frames/inner.html"></iframe>
    """
    urls = [c.url for c in _scan(html, frame_loader=frames.__getitem__)]
    assert "https://example.com/files/inner.zip" in urls
    assert "https://example.com/frames/docs/guide.pdf" in urls


def test_cross_origin_frame_is_skipped_without_failing_the_scan():
    calls = []

    def loader(url):
        calls.append(url)
        return '<a href="/secret.pdf">x</a>'

    html = """
    <a href="/files/visible.pdf">V</a>
    <iframe src="https://widgets.example.net/embed.html"></iframe>
    """
    found = _scan(html, frame_loader=loader)
    assert [c.url for c in found] == ["https://example.com/files/visible.pdf"]
    assert calls == []


def test_failing_frame_loader_is_skipped():
    def loader(url):
        raise OSError("connection reset")

    html = '<iframe src="/frames/broken.html"></iframe><img src="/img/ok.gif">'
    assert [c.url for c in _scan(html, frame_loader=loader)] == ["https://example.com/img/ok.gif"]


def test_self_referencing_frames_terminate():
    def loader(url):
        return '<iframe src="/frames/loop.html"></iframe><a href="/files/loop.pdf">L</a>'

    html = '<iframe src="/frames/loop.html"></iframe>'
    found = _scan(html, frame_loader=loader)
    assert [c.url for c in found] == ["https://example.com/files/loop.pdf"]


def test_frame_depth_is_bounded():
    def loader(url):
        depth = int(url.rsplit("/", 1)[-1].split(".")[0])
        return f'<iframe src="/f/{depth + 1}.html"></iframe><a href="/files/level{depth}.pdf">x</a>'

    doc = LiveDocument('<iframe src="/f/1.html"></iframe>', PAGE, frame_loader=loader)
    found = DocumentScanner(max_frame_depth=2).scan(doc)
    assert [c.url for c in found] == [
        "https://example.com/files/level1.pdf",
        "https://example.com/files/level2.pdf",
    ]


def test_end_to_end_inferred_download_candidate():
    found = _scan('<a href="/files/report" download>Report</a>')
    assert len(found) == 1
    c = found[0]
    assert c.url == "https://example.com/files/report"
    assert c.filename == "Report"
    assert c.extension == UNKNOWN_EXTENSION
    assert c.is_inferred_download is True
    assert c.selected is False


def test_mixed_tag_references_to_one_url_yield_one_candidate():
    html = """
    <a href="/media/shared.webm">Clip</a>
    <img src="/media/shared.webm">
    <video><source src="/media/shared.webm"></source></video>
    <embed src="/media/shared.webm"></embed>
    """
    found = _scan(html)
    assert [c.url for c in found] == ["https://example.com/media/shared.webm"]
    assert found[0].extension == "webm"


def test_spaces_in_href_are_encoded_and_filename_decoded():
    found = _scan('<a href="/files/my report.pdf">R</a>')
    assert [c.url for c in found] == ["https://example.com/files/my%20report.pdf"]
    assert found[0].filename == "my report.pdf"
