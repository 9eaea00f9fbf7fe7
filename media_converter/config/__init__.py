"""
Configuration Package for the Media Converter.

This package centralizes all the static configuration settings for the application.
By separating configuration from the application logic, it becomes easier to manage
and modify parameters without changing the core code.

This package includes settings for:
- Logging formats, subprocess timeouts, progress polling and output naming.
- User-overridable locations of the external tools (ffmpeg, ffprobe, the document
  converter and the archive extractors).
- The table of supported output formats and the extension sets used to identify
  documents, subtitles and archives.
"""
