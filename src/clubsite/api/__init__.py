"""HTTP API over the event and resource catalogs."""
