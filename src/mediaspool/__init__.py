"""MediaSpool - download, transcode and publish web video."""

__version__ = "0.1.0"
