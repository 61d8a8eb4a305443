"""Keep markdown spec folders in sync with issue-tracker records."""

__version__ = "0.3.0"
