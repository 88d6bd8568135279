"""
winbuild - Windows installer build pipeline.

Assembles an NSIS installer (via pynsist) for the application fetched from
git: embeddable Python runtime, pinned wheels, ffmpeg and friends, icon and
versioned installer metadata.
"""

__version__ = '1.0.0'
