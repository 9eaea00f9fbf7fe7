"""
This package contains the batch pipeline of the Media Converter application.

A pipeline orchestrates a whole run: it validates the request, asks the UI layer
for the page mode when documents are turned into images, owns the scratch
directory, dispatches files to the conversion executor (sequentially or on a
bounded worker pool) and folds the outcomes into a `BatchSummary`.
"""
