import json
import os
import shutil
import stat
import sys
import textwrap
import time
from pathlib import Path
from typing import List

import pytest

from media_converter.config.toolchain import Toolchain
from media_converter.domain.formats import FormatRegistry
from media_converter.domain.models import MultiPageMode
from media_converter.services.status_reporter import StatusReporter

# Fake tools decide what to do from the first bytes of their input file:
#   AUDIO...       audio stream        AUDIO-FAIL   transcoder exits 1
#   VIDEO...       h264 + aac          AUDIO-EMPTY  transcoder writes 0 bytes
#   IMAGE...       png still           AUDIO-SLOW   transcoder writes <input>.pid and sleeps
#   anything else  ffprobe exits 1     DOC-FAIL / DOC-PRIMARY-FAIL for the document converters
#   PROBE-SLOW     ffprobe writes <input>.pid and sleeps
# AUDIO-SLOW writes part of its output before it starts sleeping.

FAKE_FFPROBE = """\
#!{python}
import json, os, sys, time
with open("{log}", "a") as log:
    log.write(json.dumps(sys.argv[1:]) + "\\n")
try:
    with open(sys.argv[-1], "rb") as f:
        head = f.read(64).decode("utf-8", "replace")
except OSError:
    sys.stderr.write("No such file or directory\\n")
    sys.exit(1)
if head.startswith("PROBE-SLOW"):
    with open(sys.argv[-1] + ".pid", "w") as f:
        f.write(str(os.getpid()))
    time.sleep(60)
if head.startswith("AUDIO"):
    streams = [{"codec_type": "audio", "codec_name": "mp3"}]
elif head.startswith("VIDEO"):
    streams = [{"codec_type": "video", "codec_name": "h264"}, {"codec_type": "audio", "codec_name": "aac"}]
elif head.startswith("IMAGE"):
    streams = [{"codec_type": "video", "codec_name": "png"}]
else:
    sys.stderr.write("Invalid data found when processing input\\n")
    sys.exit(1)
print(json.dumps({"streams": streams, "format": {"duration": "10.000000"}}))
"""

FAKE_FFMPEG = """\
#!{python}
import json, os, sys, time
args = sys.argv[1:]
with open("{log}", "a") as log:
    log.write(json.dumps(args) + "\\n")
if "-version" in args:
    print("ffmpeg version 6.0-fake")
    sys.exit(0)
output = args[-1]
progress = args[args.index("-progress") + 1]
source = args[args.index("-i") + 1]
content = ""
if os.path.isfile(source):
    with open(source, "rb") as f:
        content = f.read(64).decode("utf-8", "replace")
first_page = output.replace("%03d", "001")
if "-n" in args and os.path.exists(first_page):
    sys.stderr.write("File '%s' already exists. Exiting.\\n" % first_page)
    sys.exit(1)
with open(progress, "a") as p:
    p.write("out_time_us=5000000\\nout_time=00:00:05.000000\\nprogress=continue\\n")
if content.startswith("AUDIO-FAIL"):
    sys.stderr.write("Error while decoding stream\\nConversion failed!\\n")
    sys.exit(1)
if content.startswith("AUDIO-SLOW"):
    with open(first_page, "wb") as f:
        f.write(b"half-written")
    with open(source + ".pid", "w") as f:
        f.write(str(os.getpid()))
    time.sleep(60)
    sys.exit(0)
if content.startswith("AUDIO-EMPTY"):
    open(first_page, "wb").close()
    sys.exit(0)
pages = [first_page, output.replace("%03d", "002")] if "%03d" in output else [output]
for page in pages:
    with open(page, "wb") as f:
        f.write(b"converted:" + content.encode())
with open(progress, "a") as p:
    p.write("out_time=00:00:10.000000\\nprogress=end\\n")
"""

FAKE_SOFFICE = """\
#!{python}
import json, os, sys
args = sys.argv[1:]
with open("{log}", "a") as log:
    log.write(json.dumps(args) + "\\n")
target = args[args.index("--convert-to") + 1].split(":")[0]
out_dir = args[args.index("--outdir") + 1]
source = args[-1]
with open(source, "rb") as f:
    content = f.read(64)
if content.startswith(b"DOC-FAIL") or content.startswith(b"DOC-PRIMARY-FAIL"):
    sys.exit(1)
stem = os.path.splitext(os.path.basename(source))[0]
with open(os.path.join(out_dir, stem + "." + target), "wb") as f:
    f.write(b"document:" + content)
"""

FAKE_UNOCONV = """\
#!{python}
import json, sys
args = sys.argv[1:]
with open("{log}", "a") as log:
    log.write(json.dumps(args) + "\\n")
output = args[args.index("-o") + 1]
source = args[-1]
with open(source, "rb") as f:
    content = f.read(64)
if content.startswith(b"DOC-FAIL"):
    sys.exit(1)
with open(output, "wb") as f:
    f.write(b"fallback:" + content)
"""


class FakeTools:
    """Fake external tools installed into a temporary bin directory."""

    def __init__(self, bin_dir: Path):
        self.bin_dir = bin_dir
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        scripts = {
            "ffprobe": FAKE_FFPROBE,
            "ffmpeg": FAKE_FFMPEG,
            "soffice": FAKE_SOFFICE,
            "unoconv": FAKE_UNOCONV,
        }
        for name, template in scripts.items():
            self._install(name, template)
        self.toolchain = Toolchain(
            ffmpeg=str(bin_dir / "ffmpeg"),
            ffprobe=str(bin_dir / "ffprobe"),
            document_converter=str(bin_dir / "soffice"),
            document_converter_fallback=str(bin_dir / "unoconv"),
            unzip=shutil.which("unzip") or "unzip",
            tar=shutil.which("tar") or "tar",
        )

    def _install(self, name: str, template: str):
        script = self.bin_dir / name
        log = self.bin_dir / f"{name}.log"
        body = template.replace("{python}", sys.executable).replace("{log}", str(log))
        script.write_text(textwrap.dedent(body), encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    def calls(self, name: str) -> List[List[str]]:
        log = self.bin_dir / f"{name}.log"
        if not log.exists():
            return []
        return [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines() if line]


class RecordingReporter(StatusReporter):
    def __init__(self, page_mode: MultiPageMode = MultiPageMode.SINGLE):
        self.page_mode = page_mode
        self.updates = []
        self.asked = 0
        self.summaries = []

    def update(self, status):
        self.updates.append(status)

    def ask_page_mode(self):
        self.asked += 1
        return self.page_mode

    def finished(self, summary):
        self.summaries.append(summary)


def wait_for_file(path: Path, timeout: float = 10.0) -> str:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if path.exists():
            text = path.read_text().strip()
            if text:
                return text
        time.sleep(0.05)
    raise AssertionError(f"{path} was not created within {timeout}s")


def process_exists(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@pytest.fixture
def fake_tools(tmp_path) -> FakeTools:
    return FakeTools(tmp_path / "bin")


@pytest.fixture
def toolchain(fake_tools) -> Toolchain:
    return fake_tools.toolchain


@pytest.fixture
def registry() -> FormatRegistry:
    return FormatRegistry.from_table()


@pytest.fixture
def media_dir(tmp_path) -> Path:
    directory = tmp_path / "media"
    directory.mkdir()
    return directory


@pytest.fixture
def scratch_dir(tmp_path) -> Path:
    directory = tmp_path / "scratch"
    directory.mkdir()
    return directory
