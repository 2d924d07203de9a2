"""Load-testing statistics (counters, histograms, percentiles) and TCP/UDP echo clients."""

__version__ = "1.0.0"
__all__ = ["stats", "version", "tcprunner", "udprunner"]