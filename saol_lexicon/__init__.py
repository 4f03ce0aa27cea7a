"""
SAOL lexicon core package.

This package focuses on turning scraped SAOL dictionary entries into
structured word-form data. It exposes dataclasses for documents, results and
word-class records, a pluggable markup parser interface, the table grammar
used to read inflection tables, and a threaded pipeline that drives batches
of entries through dispatch, extraction, collection and assembly.
"""
