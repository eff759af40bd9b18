"""docscan - locate a document in a photograph and rectify it to a flat scan."""

__version__ = "0.1.0"
