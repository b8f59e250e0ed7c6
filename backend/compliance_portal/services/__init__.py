"""Service helpers holding persistence logic behind the API routers."""
