"""Clean wrappers around ffprobe, ffmpeg and Pillow.

Every external media tool sits behind one of these clients so the pipeline
can be tested with mocks and never touches subprocesses directly.
"""
