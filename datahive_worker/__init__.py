"""
DataHive worker.

Polls the DataHive job API, runs each job's rule document through a small
registry of scraping tools and reports the result back.
"""

__version__ = "0.2.4"
