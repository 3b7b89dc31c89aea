"""postmaint - resumable batch maintenance scans over content records."""

__version__ = "0.1.0"
