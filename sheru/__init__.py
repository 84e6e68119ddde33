"""An interactive command shell with pipelines, redirections, here-documents and expansion."""

__version__ = "0.1.0"