import pytest

from media_converter.config.formats import AUDIO_FORMATS, FORMAT_TABLE, VIDEO_FORMATS
from media_converter.domain.exceptions import UnsupportedFormatError, UsageError
from media_converter.domain.formats import FormatRegistry, FormatSpec
from media_converter.domain.media import MediaCategory


def test_every_identifier_resolves_to_one_category_and_arguments(registry):
    assert len(registry) == len(FORMAT_TABLE)
    for identifier in FORMAT_TABLE:
        spec = registry.get(identifier)
        assert spec.identifier == identifier
        assert isinstance(spec.category, MediaCategory)
        if spec.category is not MediaCategory.SUBTITLE:
            assert spec.transcoder_args, identifier


def test_original_audio_and_video_formats_are_present(registry):
    assert len(AUDIO_FORMATS) == 10
    assert len(VIDEO_FORMATS) == 10
    for identifier in ("mp3", "aac", "wav", "flac", "ogg", "m4a", "wma", "opus", "ac3", "amr"):
        assert registry.category_of(identifier) is MediaCategory.AUDIO
    for identifier in ("mp4", "mkv", "avi", "webm", "mov", "flv", "wmv", "m4v", "3gp", "ts"):
        assert registry.category_of(identifier) is MediaCategory.VIDEO


def test_known_presets(registry):
    assert registry.get("mp3").transcoder_args == ("-c:a", "libmp3lame", "-q:a", "2")
    assert registry.get("webm").transcoder_args[:2] == ("-c:v", "libvpx-vp9")
    assert registry.get("txt").transcoder_args == ("txt:Text",)


def test_lookup_is_case_insensitive(registry):
    assert registry.get("MP3").identifier == "mp3"
    assert "Mp4" in registry
    assert 42 not in registry


def test_unknown_format_is_a_usage_error(registry):
    with pytest.raises(UnsupportedFormatError, match="xyz"):
        registry.get("xyz")
    assert issubclass(UnsupportedFormatError, UsageError)


def test_duplicate_identifiers_are_rejected():
    spec = FormatSpec("mp3", MediaCategory.AUDIO, ("-c:a", "libmp3lame"))
    with pytest.raises(ValueError, match="Duplicate"):
        FormatRegistry([spec, FormatSpec("MP3", MediaCategory.AUDIO)])


def test_by_category_and_custom_table():
    registry = FormatRegistry.from_table({
        "a1": ("audio", "First", ("-c:a", "x")),
        "v1": ("video", "Second", ("-c:v", "y")),
    })
    assert [spec.identifier for spec in registry.by_category(MediaCategory.AUDIO)] == ["a1"]
    assert registry.identifiers() == ["a1", "v1"]
    assert registry.by_category(MediaCategory.IMAGE) == []
