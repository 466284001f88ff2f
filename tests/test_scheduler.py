import asyncio

from aiohttp import web
from aiohttp.test_utils import TestServer

from filescout.workflows.candidates import ResourceCandidate
from filescout.workflows.dom import LiveDocument
from filescout.workflows.scanner import scan_document
from filescout.workflows.scheduler import DiskSaver, DownloadScheduler, plan_downloads, unique_path
from filescout.workflows.scout_config import ScoutConfig


def _c(url: str, filename: str, final_url=None) -> ResourceCandidate:
    return ResourceCandidate(url=url, filename=filename, extension="pdf", final_url=final_url)


def test_plan_suffixes_repeated_names():
    planned = plan_downloads(
        [
            _c("https://e.com/1", "report.pdf"),
            _c("https://e.com/2", "report.pdf"),
            _c("https://e.com/3", "report.pdf"),
            _c("https://e.com/4", "README"),
            _c("https://e.com/5", "README"),
        ]
    )
    assert [p.filename for p in planned] == [
        "report.pdf",
        "report (1).pdf",
        "report (2).pdf",
        "README",
        "README (1)",
    ]


def test_plan_skips_suffixes_already_issued():
    planned = plan_downloads(
        [
            _c("https://e.com/1", "report (1).pdf"),
            _c("https://e.com/2", "report.pdf"),
            _c("https://e.com/3", "report.pdf"),
        ]
    )
    assert [p.filename for p in planned] == ["report (1).pdf", "report.pdf", "report (2).pdf"]


def test_plan_sanitizes_and_prefers_final_url():
    planned = plan_downloads(
        [
            _c("https://e.com/get/1", 'Q3: "final"/draft?.pdf', final_url="https://cdn.e.com/q3.pdf"),
            _c("https://e.com/get/2", ""),
        ]
    )
    assert planned[0].filename == "Q3 final draft .pdf"
    assert planned[0].url == "https://cdn.e.com/q3.pdf"
    assert planned[1].filename == "download"
    assert planned[1].url == "https://e.com/get/2"


def test_schedule_is_sequential_and_continues_after_failure(monkeypatch):
    saved = []
    pauses = []

    async def fake_sleep(delay):
        pauses.append(delay)

    async def saver(url, filename):
        if url.endswith("/2"):
            raise RuntimeError("disk full")
        saved.append((url, filename))
        return f"id-{len(saved)}"

    monkeypatch.setattr("filescout.workflows.scheduler.asyncio.sleep", fake_sleep)
    scheduler = DownloadScheduler(saver, ScoutConfig())
    outcomes = asyncio.run(
        scheduler.schedule(
            [
                _c("https://e.com/1", "a.pdf"),
                _c("https://e.com/2", "a.pdf"),
                _c("https://e.com/3", "a.pdf"),
            ]
        )
    )
    assert saved == [("https://e.com/1", "a.pdf"), ("https://e.com/3", "a (2).pdf")]
    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[1].error == "disk full"
    assert outcomes[1].filename == "a (1).pdf"
    assert outcomes[2].identifier == "id-2"
    assert pauses == [0.2, 0.2]


def test_unique_path(tmp_path):
    (tmp_path / "a.pdf").write_bytes(b"x")
    (tmp_path / "a (1).pdf").write_bytes(b"x")
    assert unique_path(tmp_path, "a.pdf") == tmp_path / "a (2).pdf"
    assert unique_path(tmp_path, "b.pdf") == tmp_path / "b.pdf"


async def _file_handler(request):
    return web.Response(body=b"%PDF-1.4 body", content_type="application/pdf")


async def _missing_handler(request):
    raise web.HTTPNotFound()


def test_disk_saver_streams_and_never_overwrites(tmp_path):
    app = web.Application()
    app.router.add_get("/files/a.pdf", _file_handler)
    app.router.add_get("/files/missing.pdf", _missing_handler)
    (tmp_path / "a.pdf").write_bytes(b"existing")

    async def _run():
        async with TestServer(app) as server:
            async with DiskSaver(tmp_path, ScoutConfig()) as disk:
                scheduler = DownloadScheduler(disk, ScoutConfig(download_pause=0))
                return await scheduler.schedule(
                    [
                        _c(str(server.make_url("/files/a.pdf")), "a.pdf"),
                        _c(str(server.make_url("/files/missing.pdf")), "missing.pdf"),
                    ]
                )

    outcomes = asyncio.run(_run())
    assert outcomes[0].ok is True
    assert outcomes[0].identifier == str(tmp_path / "a (1).pdf")
    assert (tmp_path / "a (1).pdf").read_bytes() == b"%PDF-1.4 body"
    assert (tmp_path / "a.pdf").read_bytes() == b"existing"
    assert outcomes[1].ok is False
    assert not (tmp_path / "missing.pdf").exists()
    assert not list(tmp_path.glob("*.part"))


async def _named_file_handler(request):
    if request.match_info["name"] != "my report.pdf":
        raise web.HTTPNotFound()
    return web.Response(body=b"spaced", content_type="application/pdf")


def test_scanned_link_with_spaces_downloads_the_referenced_file(tmp_path):
    app = web.Application()
    app.router.add_get("/files/{name}", _named_file_handler)

    async def _run():
        async with TestServer(app) as server:
            page = str(server.make_url("/page/"))
            found = scan_document(LiveDocument('<a href="/files/my report.pdf">R</a>', page))
            async with DiskSaver(tmp_path, ScoutConfig()) as disk:
                return await DownloadScheduler(disk, ScoutConfig(download_pause=0)).schedule(found)

    outcomes = asyncio.run(_run())
    assert outcomes[0].ok is True
    assert outcomes[0].filename == "my report.pdf"
    assert (tmp_path / "my report.pdf").read_bytes() == b"spaced"
