"""
Configuration of the supported output formats and the file-type extension sets.

The format table maps every output-format identifier accepted on the command line
to its media category, a human-readable description, and the ordered transcoder
argument template used to produce it. The table is plain data; it is turned into
an immutable `FormatRegistry` once at startup (see `media_converter.domain.formats`).

For document formats the template holds the document converter's target filter
(the value passed to `--convert-to`) rather than transcoder arguments.
"""

# ======================================================================================
# Output Format Table
# ======================================================================================

# identifier: (category, description, transcoder arguments)
AUDIO_FORMATS = {
    "mp3": ("audio", "MPEG Layer-3 Audio", ("-c:a", "libmp3lame", "-q:a", "2")),
    "aac": ("audio", "Advanced Audio Coding", ("-c:a", "aac", "-b:a", "192k")),
    "wav": ("audio", "Waveform Audio", ("-c:a", "pcm_s16le")),
    "flac": ("audio", "Free Lossless Audio Codec", ("-c:a", "flac")),
    "ogg": ("audio", "Ogg Vorbis Audio", ("-c:a", "libvorbis", "-q:a", "4")),
    "m4a": ("audio", "MPEG-4 Audio", ("-c:a", "aac", "-b:a", "192k")),
    "wma": ("audio", "Windows Media Audio", ("-c:a", "wmav2", "-b:a", "192k")),
    "opus": ("audio", "Opus Audio", ("-c:a", "libopus", "-b:a", "128k")),
    "ac3": ("audio", "Dolby Digital Audio", ("-c:a", "ac3", "-b:a", "384k")),
    "amr": ("audio", "Adaptive Multi-Rate Audio", ("-c:a", "libopencore_amrnb", "-ar", "8000", "-ac", "1", "-b:a", "12.2k")),
}

_H264_AAC = ("-c:v", "libx264", "-crf", "23", "-preset", "medium", "-c:a", "aac", "-b:a", "192k")

VIDEO_FORMATS = {
    "mp4": ("video", "MPEG-4 Video", _H264_AAC),
    "mkv": ("video", "Matroska Video", _H264_AAC),
    "avi": ("video", "Audio Video Interleave", ("-c:v", "mpeg4", "-q:v", "5", "-c:a", "libmp3lame", "-q:a", "4")),
    "webm": ("video", "WebM Video", ("-c:v", "libvpx-vp9", "-crf", "30", "-b:v", "0", "-c:a", "libopus", "-b:a", "128k")),
    "mov": ("video", "QuickTime Video", _H264_AAC),
    "flv": ("video", "Flash Video", ("-c:v", "libx264", "-crf", "23", "-c:a", "aac", "-b:a", "128k", "-ar", "44100")),
    "wmv": ("video", "Windows Media Video", ("-c:v", "wmv2", "-b:v", "2M", "-c:a", "wmav2", "-b:a", "192k")),
    "m4v": ("video", "MPEG-4 Video", _H264_AAC),
    "3gp": ("video", "3GPP Video", ("-c:v", "libx264", "-profile:v", "baseline", "-c:a", "aac", "-b:a", "64k", "-ar", "22050")),
    "ts": ("video", "MPEG Transport Stream", _H264_AAC + ("-f", "mpegts")),
}

IMAGE_FORMATS = {
    "png": ("image", "Portable Network Graphics", ("-c:v", "png")),
    "jpg": ("image", "JPEG Image", ("-c:v", "mjpeg", "-q:v", "2")),
    "webp": ("image", "WebP Image", ("-c:v", "libwebp", "-quality", "90")),
    "gif": ("image", "Graphics Interchange Format", ("-c:v", "gif")),
    "bmp": ("image", "Bitmap Image", ("-c:v", "bmp")),
    "tiff": ("image", "Tagged Image File Format", ("-c:v", "tiff")),
    "ico": ("image", "Windows Icon", ("-c:v", "bmp")),
}

DOCUMENT_FORMATS = {
    "pdf": ("document", "Portable Document Format", ("pdf",)),
    "docx": ("document", "Word Document", ("docx",)),
    "odt": ("document", "OpenDocument Text", ("odt",)),
    "rtf": ("document", "Rich Text Format", ("rtf",)),
    "txt": ("document", "Plain Text", ("txt:Text",)),
    "html": ("document", "HTML Document", ("html",)),
}

# The transcoder picks the subtitle encoder from the output extension.
SUBTITLE_FORMATS = {
    "srt": ("subtitle", "SubRip Subtitles", ()),
    "vtt": ("subtitle", "WebVTT Subtitles", ()),
    "ass": ("subtitle", "Advanced SubStation Alpha", ()),
}

FORMAT_TABLE = {
    **AUDIO_FORMATS,
    **VIDEO_FORMATS,
    **IMAGE_FORMATS,
    **DOCUMENT_FORMATS,
    **SUBTITLE_FORMATS,
}

# Image formats whose muxer can hold an animation; used by the multi-page
# "animated" mode.
ANIMATED_IMAGE_FORMATS = ("gif", "webp")


# ======================================================================================
# File Identification
# ======================================================================================

# Extension sets consulted before any metadata probing. Matching is
# case-insensitive and suffix-based so that compound extensions work.
DOCUMENT_EXTENSIONS = (
    ".pdf", ".doc", ".docx", ".odt", ".rtf", ".txt", ".html", ".htm",
    ".ppt", ".pptx", ".odp", ".xls", ".xlsx", ".ods",
)
SUBTITLE_EXTENSIONS = (".srt", ".vtt", ".ass", ".ssa", ".sub")
ARCHIVE_EXTENSIONS = (".zip", ".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2")

# Documents that are rasterised directly instead of being staged as PDF.
PLAIN_TEXT_EXTENSIONS = (".txt",)

# Video-stream codecs that denote a still image rather than motion video.
STILL_IMAGE_CODECS = (
    "mjpeg", "png", "webp", "gif", "tiff", "bmp", "ico", "jpeg2000", "apng",
)
