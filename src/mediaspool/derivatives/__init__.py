"""Derivative generators run against a job's source file.

Each generator owns one artifact family (screenshots, poster, mosaic,
preview clip, encrypted HLS) and raises on failure; the transcoder decides
which failures are isolated.
"""
