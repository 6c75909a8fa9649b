"""Renderer package."""

from .pdf_renderer import PDFRenderer, render_pdf
from .resolvers import FileImageResolver, ImageData, MathGraphic, MathtextResolver
from .styles import APA, MLA, StyleProfile, UnknownStyleError, get_profile

__all__ = [
    "PDFRenderer",
    "render_pdf",
    "FileImageResolver",
    "ImageData",
    "MathGraphic",
    "MathtextResolver",
    "APA",
    "MLA",
    "StyleProfile",
    "UnknownStyleError",
    "get_profile",
]
