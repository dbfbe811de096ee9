"""Club site content sync: Google Calendar events and Drive resources into JSON catalogs."""

__version__ = "0.1.0"
