from pathlib import Path

import pytest

import main
from media_converter.cli import get_args
from media_converter.domain.models import MultiPageMode


def test_no_files_is_a_usage_error():
    assert main.main(["mp3"]) == main.EXIT_USAGE
    assert main.main([]) == main.EXIT_USAGE


def test_unknown_format_is_a_usage_error():
    assert main.main(["xyz", "a.wav"]) == main.EXIT_USAGE


def test_list_formats(capsys):
    assert main.main(["--list-formats"]) == main.EXIT_SUCCESS
    out = capsys.readouterr().out
    assert "Audio formats:" in out
    assert "Document formats:" in out
    assert "mp3" in out and "MPEG Layer-3 Audio" in out
    assert out.index("Audio formats:") < out.index("Video formats:")


def test_get_args_defaults():
    args = get_args(["mp4", "a.mov", "b.mov"])
    assert args.format == "mp4"
    assert args.files == [Path("a.mov"), Path("b.mov")]
    assert args.jobs == 1
    assert args.page_mode is None
    assert args.log_level == "INFO"
    assert args.timeout is None


def test_get_args_options(tmp_path):
    scratch = tmp_path / "new" / "scratch"
    args = get_args([
        "png", "doc.pdf",
        "--page-mode", "animated",
        "--jobs", "3",
        "--timeout", "90",
        "--scratch-dir", str(scratch),
        "--report", str(tmp_path / "report.yaml"),
    ])
    assert args.page_mode is MultiPageMode.ANIMATED
    assert args.jobs == 3
    assert args.timeout == 90.0
    assert scratch.is_dir()
    assert args.scratch_dir == scratch.resolve()


@pytest.mark.parametrize("argv", [["mp3", "a.wav", "--jobs", "0"], ["mp3", "a.wav", "--page-mode", "all"]])
def test_invalid_options_exit_with_usage_status(argv):
    with pytest.raises(SystemExit) as excinfo:
        get_args(argv)
    assert excinfo.value.code == 2


def test_missing_transcoder_fails(monkeypatch, tmp_path):
    from media_converter.config.toolchain import Toolchain

    monkeypatch.setattr(
        main.Toolchain, "from_config",
        classmethod(lambda cls: Toolchain(ffmpeg=str(tmp_path / "none"), ffprobe=str(tmp_path / "none"))),
    )
    song = tmp_path / "song.wav"
    song.write_text("AUDIO data")
    assert main.main(["mp3", str(song)]) == main.EXIT_FAILURE


def test_full_run_writes_report(monkeypatch, fake_tools, media_dir, tmp_path):
    import yaml

    monkeypatch.setattr(main.Toolchain, "from_config", classmethod(lambda cls: fake_tools.toolchain))
    good = media_dir / "good.wav"
    good.write_text("AUDIO good")
    bad = media_dir / "bad.bin"
    bad.write_text("garbage")
    report = tmp_path / "report.yaml"
    error_dir = tmp_path / "errors"

    status = main.main(["mp3", str(good), str(bad), "--report", str(report), "--error-log-dir", str(error_dir)])

    assert status == main.EXIT_FAILURE
    data = yaml.safe_load(report.read_text(encoding="utf-8"))
    assert data["output_format"] == "mp3"
    assert data["succeeded_count"] == 1
    assert data["failed_files"] == ["bad.bin"]
    assert data["all_succeeded"] is False
    assert "Not a valid media file: bad.bin" in (error_dir / "conversion_errors.txt").read_text(encoding="utf-8")
