"""
Ingestion: extraction, segmentation and embedding of content sources.

This module turns configured sources (FAQ lists, Flarum forum exports,
web sitemaps, markdown archives) into token-bounded, embedded segments
and writes them into the source's vector collection.
"""
