"""MediaCap - live media URL capture and relay service.

A Playwright-driven capture engine that renders a target page, collects the
media resources it references or loads dynamically, deduplicates them into
canonical references and streams them to subscribers while the capture
session is alive.
"""

__version__ = "1.0.0"
