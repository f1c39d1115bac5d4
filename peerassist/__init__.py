"""PeerAssist: peer-to-peer task marketplace."""

__version__ = "0.1.0"
