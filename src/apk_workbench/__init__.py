"""apk-workbench - decompile, edit, recompile and sign Android packages."""

__version__ = "1.0.0"
