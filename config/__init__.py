"""Django project package for the location viewer."""
