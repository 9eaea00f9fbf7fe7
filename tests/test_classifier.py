from pathlib import Path

import pytest

from conftest import process_exists, wait_for_file
from media_converter.domain.media import MediaCategory, MediaProbe, parse_duration
from media_converter.services.classifier import (
    MediaClassifier,
    category_from_extension,
    category_from_probe,
)


@pytest.fixture
def classifier(toolchain):
    return MediaClassifier(toolchain.ffprobe, probe_timeout=10)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("a.zip", MediaCategory.ARCHIVE),
        ("a.TAR.GZ", MediaCategory.ARCHIVE),
        ("a.tbz2", MediaCategory.ARCHIVE),
        ("report.docx", MediaCategory.DOCUMENT),
        ("notes.txt", MediaCategory.DOCUMENT),
        ("movie.srt", MediaCategory.SUBTITLE),
        ("song.mp3", None),
        ("gz", None),
    ],
)
def test_category_from_extension(name, expected):
    assert category_from_extension(Path(name)) is expected


def test_category_from_probe_rules():
    def probe(*streams):
        return MediaProbe(Path("x"), {"streams": list(streams)})

    png = {"codec_type": "video", "codec_name": "png"}
    h264 = {"codec_type": "video", "codec_name": "h264"}
    aac = {"codec_type": "audio", "codec_name": "aac"}
    cover = {"codec_type": "video", "codec_name": "mjpeg", "disposition": {"attached_pic": 1}}

    assert category_from_probe(probe(png)) is MediaCategory.IMAGE
    assert category_from_probe(probe(h264, aac)) is MediaCategory.VIDEO
    assert category_from_probe(probe(png, aac)) is MediaCategory.VIDEO
    assert category_from_probe(probe(aac, cover)) is MediaCategory.AUDIO
    assert category_from_probe(probe()) is MediaCategory.INVALID


def test_classify_by_probe(classifier, media_dir):
    (media_dir / "song.wav").write_text("AUDIO data")
    (media_dir / "clip.mp4").write_text("VIDEO data")
    (media_dir / "pic.png").write_text("IMAGE data")
    (media_dir / "junk.bin").write_text("garbage")

    assert classifier.classify(media_dir / "song.wav") is MediaCategory.AUDIO
    assert classifier.classify(media_dir / "clip.mp4") is MediaCategory.VIDEO
    assert classifier.classify(media_dir / "pic.png") is MediaCategory.IMAGE
    assert classifier.classify(media_dir / "junk.bin") is MediaCategory.INVALID


def test_missing_file_and_directories_are_invalid(classifier, media_dir):
    assert classifier.classify(media_dir / "missing.wav") is MediaCategory.INVALID
    assert classifier.classify(media_dir) is MediaCategory.INVALID


def test_extension_categories_do_not_probe(classifier, media_dir, fake_tools):
    (media_dir / "report.docx").write_text("anything")
    assert classifier.classify(media_dir / "report.docx") is MediaCategory.DOCUMENT
    assert fake_tools.calls("ffprobe") == []


def test_probe_results_are_cached(classifier, media_dir, fake_tools):
    song = media_dir / "song.wav"
    song.write_text("AUDIO data")
    assert classifier.classify(song) is MediaCategory.AUDIO
    assert classifier.duration(song) == 10.0
    assert len(fake_tools.calls("ffprobe")) == 1


def test_unavailable_prober_classifies_as_invalid(media_dir):
    song = media_dir / "song.wav"
    song.write_text("AUDIO data")
    classifier = MediaClassifier(str(media_dir / "no-such-ffprobe"))
    assert classifier.classify(song) is MediaCategory.INVALID
    assert classifier.duration(song) == 0.0


def test_hanging_prober_is_killed(toolchain, media_dir):
    song = media_dir / "hang.wav"
    song.write_text("PROBE-SLOW")
    classifier = MediaClassifier(toolchain.ffprobe, probe_timeout=1)

    assert classifier.classify(song) is MediaCategory.INVALID
    pid = int(wait_for_file(media_dir / "hang.wav.pid"))
    assert not process_exists(pid)


@pytest.mark.parametrize(
    "text,seconds",
    [
        ("3600.5", 3600.5),
        ("01:00:00.500", 3600.5),
        ("02:03", 123.0),
        ("N/A", 0.0),
        ("garbage", 0.0),
    ],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


def test_probe_duration_falls_back_to_streams():
    probe = MediaProbe(Path("x"), {"format": {"duration": "N/A"}, "streams": [{"duration": "12.5"}]})
    assert probe.duration == 12.5
    assert MediaProbe(Path("x"), {}).duration == 0.0
