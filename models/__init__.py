# models/__init__.py

from .document import Document
