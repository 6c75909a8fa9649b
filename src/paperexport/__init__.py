"""Export Markdown notes to APA- or MLA-styled PDF documents."""

__version__ = "0.1.0"
