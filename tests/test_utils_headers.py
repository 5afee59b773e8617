import utils


def test_humanize_size_basic():
    assert utils.humanize_size(0) == "0B"
    assert utils.humanize_size(1024) == "1.0 KB"
    assert utils.humanize_size(2 * 1024 ** 3) == "2.0 GB"


def test_humanize_size_large_caps():
    assert utils.humanize_size(1024 ** 6).endswith("TB")


def test_content_length():
    assert utils.content_length({"Content-Length": "1234"}) == 1234
    assert utils.content_length({}) == 0
    assert utils.content_length({"Content-Length": "junk"}) == 0
    assert utils.content_length({"Content-Length": "-5"}) == 0


def test_filename_from_disposition():
    headers = {"Content-Disposition": 'attachment; filename="report%20final.pdf"'}
    assert utils.filename_from_headers(headers, "https://x.org/download?id=1") == "report final.pdf"


def test_filename_from_url_path():
    assert utils.filename_from_headers({}, "https://x.org/files/My%20Movie.mp4?sig=abc") == "My Movie.mp4"


def test_filename_extension_from_content_type():
    name = utils.filename_from_headers({"Content-Type": "application/pdf"}, "https://x.org/get/report")
    assert name == "report.pdf"


def test_filename_fallback():
    assert utils.filename_from_headers({}, "https://x.org/get/report") == utils.DEFAULT_FILENAME
    assert utils.filename_from_headers({"Content-Type": "x-unknown/zzz"}, "https://x.org/") == "file.bin"


def test_is_video():
    assert utils.is_video("video/mp4", "clip")
    assert utils.is_video(None, "CLIP.MP4")
    assert not utils.is_video("video/webm", "clip.webm")
