import subprocess
import sys
import threading
from datetime import timedelta
from pathlib import Path

import pytest

from media_converter.domain.exceptions import ConversionCancelled
from media_converter.services.document_service import DocumentConverter, target_extension
from media_converter.utils.format_utils import contains_any_extensions, format_timedelta, formatted_size, matching_extension
from media_converter.utils.process_utils import (
    SupervisedProcess,
    display_command,
    escape_filter_path,
    read_tail,
    run_supervised,
)


def test_run_supervised_returns_exit_code(tmp_path):
    stderr = tmp_path / "stderr.txt"
    code = run_supervised([sys.executable, "-c", "import sys; sys.stderr.write('oops\\n'); sys.exit(3)"], stderr_path=stderr)
    assert code == 3
    assert read_tail(stderr, 5) == "oops"


def test_supervised_process_times_out_and_is_killed():
    with pytest.raises(subprocess.TimeoutExpired):
        with SupervisedProcess([sys.executable, "-c", "import time; time.sleep(60)"], timeout=0.5, poll_interval=0.05) as process:
            child = process.process
            process.wait()
    assert child.poll() is not None


def test_supervised_process_honours_cancellation():
    cancel_event = threading.Event()
    cancel_event.set()
    with pytest.raises(ConversionCancelled):
        run_supervised([sys.executable, "-c", "import time; time.sleep(60)"], cancel_event=cancel_event, poll_interval=0.05)


def test_missing_executable_raises_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError):
        run_supervised([str(tmp_path / "missing")])


def test_escape_filter_path():
    assert escape_filter_path("/a/b.srt") == "/a/b.srt"
    assert escape_filter_path("/m/Don't Stop.srt") == r"/m/Don\\\'t Stop.srt"
    assert escape_filter_path("C:\\subs\\it's.srt") == r"C\\\:/subs/it\\\'s.srt"
    assert escape_filter_path("/m/a,b[1];c.srt") == r"/m/a\,b\[1\]\;c.srt"


def test_read_tail_limits_lines(tmp_path):
    log = tmp_path / "log.txt"
    log.write_text("1\n\n2\n3\n4\n")
    assert read_tail(log, 2) == "3\n4"
    assert read_tail(tmp_path / "missing.txt", 2) == ""


def test_display_command_quotes_arguments():
    assert display_command(["ffmpeg", "-i", "my file.wav"]) == "ffmpeg -i 'my file.wav'"


def test_format_helpers():
    assert format_timedelta(timedelta(seconds=7261)) == "02:01:01"
    assert formatted_size(1536) == "1.50 KB"
    assert formatted_size(2 * 1024 * 1024) == "2 MB"
    assert matching_extension(Path("a.tar.gz"), [".gz", ".tar.gz"]) == ".tar.gz"
    assert matching_extension(Path(".zip"), [".zip"]) is None
    assert contains_any_extensions(Path("A.ZIP"), ["zip"])


def test_document_to_pdf_copies_pdfs(toolchain, tmp_path, fake_tools):
    source = tmp_path / "paper.pdf"
    source.write_text("PDF data")
    staging = tmp_path / "staging"
    staging.mkdir()
    staged = DocumentConverter(toolchain).to_pdf(source, staging)
    assert staged == staging / "paper.pdf"
    assert staged.read_text() == "PDF data"
    assert fake_tools.calls("soffice") == []
    assert target_extension("txt:Text") == "txt"
