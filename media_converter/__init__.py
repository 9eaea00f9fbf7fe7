"""
The Media Converter package.

Converts batches of audio, video, image, document, subtitle and archive files to
a single output format by driving external tools (ffmpeg, ffprobe, a document
converter and the archive extractors) as supervised child processes.

The package is organised in layers:

- `config`: constants, the user configuration file, the format table and the
  locations of the external tools.
- `domain`: the value types (categories, format registry, requests, outcomes,
  summaries) and the exception taxonomy.
- `services`: the classifier, the compatibility validator, the output path
  allocator, the archive expander, the document converter, the progress monitor,
  the conversion executor, the status reporters and the log/report writers.
- `pipeline`: the batch orchestrator.
- `utils`: subprocess supervision and formatting helpers.
"""
