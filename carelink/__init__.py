"""Django project package for the carelink backend."""
