"""Command line interface for catalog-tools.

* :mod:`catalog_tools.cli.args` builds the argument parser.
* :mod:`catalog_tools.cli.inspect_book` parses a file (optionally enriching
  it) and prints the resulting JSON document.
"""
