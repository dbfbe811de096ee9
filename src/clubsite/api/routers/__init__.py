"""Route modules mounted by ``create_app()``."""
