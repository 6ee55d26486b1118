"""Tests for content-addressed asset downloads."""

import hashlib

import httpx
import pytest

from src.domeggook_export.assets import AssetAcquirer, content_addressed_name, url_extension


def make_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def client(requests_seen):
    def handler(request):
        requests_seen.append(str(request.url))
        if "missing" in request.url.path:
            return httpx.Response(404)
        return httpx.Response(200, content=f"bytes:{request.url.path}".encode())

    with make_client(handler) as client:
        yield client


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://img.example.com/a/b/photo.PNG", ".png"),
        ("https://img.example.com/photo.jpeg?w=100", ".jpeg"),
        ("https://img.example.com/image", ".jpg"),
        ("https://img.example.com/download.php?id=3", ".php"),
        ("https://img.example.com/file.toolongext", ".jpg"),
    ],
)
def test_url_extension(url, expected):
    assert url_extension(url) == expected


def test_content_addressed_name_is_hash_of_url():
    url = "https://img.example.com/photo.gif"
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
    assert content_addressed_name(url) == f"{digest}.gif"


def test_acquire_writes_file(tmp_path, client):
    acquirer = AssetAcquirer(tmp_path / "images", client=client)

    asset = acquirer.acquire("https://img.example.com/p/1.png")

    assert asset.succeeded
    assert asset.source_url == "https://img.example.com/p/1.png"
    assert asset.local_path == str(tmp_path / "images" / content_addressed_name(asset.source_url))
    with open(asset.local_path, "rb") as handle:
        assert handle.read() == b"bytes:/p/1.png"


def test_acquire_is_idempotent(tmp_path, client, requests_seen):
    acquirer = AssetAcquirer(tmp_path / "images", client=client)
    url = "https://img.example.com/p/2.jpg"

    first = acquirer.acquire(url)
    second = acquirer.acquire(url)

    assert first.local_path == second.local_path
    assert second.succeeded
    assert requests_seen == [url]


def test_failed_download_has_empty_path(tmp_path, client):
    acquirer = AssetAcquirer(tmp_path / "images", client=client)

    asset = acquirer.acquire("https://img.example.com/missing.jpg")

    assert not asset.succeeded
    assert asset.local_path == ""
    assert asset.source_url == "https://img.example.com/missing.jpg"
    assert not list((tmp_path / "images").iterdir())


def test_transport_error_is_contained(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with make_client(handler) as client:
        acquirer = AssetAcquirer(tmp_path / "images", client=client)
        asset = acquirer.acquire("https://img.example.com/a.jpg")

    assert not asset.succeeded
    assert asset.local_path == ""


@pytest.mark.parametrize(
    "url",
    [
        "",
        "data:image/png;base64,AAAA",
        "ftp://example.com/a.jpg",
        "http://[::1/a.jpg",
        "https://",
        "//img.example.com/a.jpg",
    ],
)
def test_unsupported_urls_fail_without_request(tmp_path, client, requests_seen, url):
    acquirer = AssetAcquirer(tmp_path / "images", client=client)

    asset = acquirer.acquire(url)

    assert not asset.succeeded
    assert requests_seen == []


@pytest.mark.parametrize("workers", [1, 4])
def test_acquire_all_preserves_order(tmp_path, client, workers):
    acquirer = AssetAcquirer(tmp_path / "images", client=client, max_workers=workers)
    urls = [
        "https://img.example.com/1.jpg",
        "https://img.example.com/missing.jpg",
        "https://img.example.com/3.png",
    ]

    results = acquirer.acquire_all(urls)

    assert [asset.source_url for asset in results] == urls
    assert [asset.succeeded for asset in results] == [True, False, True]


def test_acquire_all_fetches_repeated_urls_once(tmp_path, client, requests_seen):
    acquirer = AssetAcquirer(tmp_path / "images", client=client)
    url = "https://img.example.com/dup.jpg"

    results = acquirer.acquire_all([url, url])

    assert len(results) == 2
    assert results[0] == results[1]
    assert requests_seen == [url]


def test_acquire_all_empty(tmp_path, client):
    assert AssetAcquirer(tmp_path / "images", client=client).acquire_all([]) == []


def test_client_value_error_is_contained(tmp_path):
    def handler(request):
        raise ValueError("bad header value")

    with make_client(handler) as client:
        acquirer = AssetAcquirer(tmp_path / "images", client=client)
        asset = acquirer.acquire("https://img.example.com/a.jpg")

    assert not asset.succeeded
    assert asset.local_path == ""
    assert not list((tmp_path / "images").glob("*.part"))


def test_malformed_url_in_batch_keeps_others(tmp_path, client):
    acquirer = AssetAcquirer(tmp_path / "images", client=client, max_workers=3)
    urls = ["https://img.example.com/1.jpg", "http://[::1/a.jpg", "https://img.example.com/3.jpg"]

    results = acquirer.acquire_all(urls)

    assert [asset.succeeded for asset in results] == [True, False, True]
