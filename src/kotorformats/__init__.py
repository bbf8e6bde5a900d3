"""Binary resource codecs for the Knights of the Old Republic games."""

__version__ = "0.3.0"
