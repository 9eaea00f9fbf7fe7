"""
Utilities Package for the Media Converter Application.

This package contains helper modules that provide common, reusable functionality
across the application. These utilities are not specific to any single part of
the conversion domain.

Modules:
    - process_utils.py: Runs external tools as supervised child processes in their
      own process group, with a deadline and a cancellation flag.
    - format_utils.py: Contains helper functions for formatting durations and file
      sizes and for matching (compound) file extensions.
    - dependency_check.py: Verifies at startup that the external tools can be found.
"""
