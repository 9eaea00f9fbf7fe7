"""
Services Package for the Media Converter Application.

This package contains the "service layer" of the application. In this architecture,
a service is a class designed to perform a specific, high-level task or coordinate
a piece of business logic. These services act as a bridge between the batch
pipeline (the "when") and the lower-level domain models and external tools
(the "what" and "with what").

The primary responsibilities of services in this application include:

- **Classification and validation (`MediaClassifier`, `CompatibilityValidator`):**
  Decide what kind of media a file holds and whether it may become the requested
  output format.

- **Conversion Service (`ConversionExecutor`):**
  The core service. It takes one request from validation to a finished output
  file, building the transcoder command, supervising the child process and
  cleaning up after it.

- **Supporting services (`OutputPathAllocator`, `ArchiveExpander`,
  `DocumentConverter`, `ProgressMonitor`):**
  Allocate collision-free output names, unpack archives, drive the document
  converter and observe transcoder progress.

- **Reporting (`StatusReporter`, `ErrorLog`, `SummaryReport`):**
  Live status for the UI layer, plain-text diagnostics for failures and a YAML
  summary of the run, separate from the real-time console logging.
"""
