"""
Error types raised while generating certificates.

Two tiers:
    recoverable: ValidationError, RenderError. Scoped to one recipient; the
        batch records them and moves on.
    fatal: SourceIOError, StreamError, TemplateNotFoundError, OutputDirectoryError.
        Abort the whole run before (or while) reading recipients.
"""

from __future__ import annotations


class CertificateError(Exception):
    """Base class for every error the generator raises on purpose."""


class ValidationError(CertificateError):
    """A recipient row is missing a required field."""


class RenderError(CertificateError):
    """Loading the template, drawing, serializing or writing a certificate failed."""


class SourceIOError(CertificateError):
    """The recipient CSV could not be opened."""


class StreamError(CertificateError):
    """The recipient CSV broke while being read."""


class TemplateNotFoundError(CertificateError):
    """The template PDF does not exist."""


class OutputDirectoryError(CertificateError):
    """The output directory could not be created."""
