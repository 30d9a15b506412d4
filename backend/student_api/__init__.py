"""Student records API: CRUD over student records with validated input."""

__version__ = "1.0.0"
