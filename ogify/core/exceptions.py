"""
Exceptions
==========

Error kinds raised while turning markup into an image. Every error is fatal
for the request that raised it; diagnostics that should not interrupt a
render are logged instead.
"""


class ImageGenerationError(Exception):
    """Base class for image generation failures."""

    error_code = "IMAGE_GENERATION_ERROR"
    status_code = 500


class MalformedMarkupError(ImageGenerationError):
    """Markup could not be compiled into an element tree."""

    error_code = "MALFORMED_MARKUP"
    status_code = 400


class EngineInitError(ImageGenerationError):
    """A rendering engine failed to bootstrap."""

    error_code = "ENGINE_INIT_FAILED"
    status_code = 503

    def __init__(self, message: str, failed_engines: tuple = ()):
        super().__init__(message)
        self.failed_engines = failed_engines


class AssetFetchError(ImageGenerationError):
    """A font or glyph asset could not be downloaded."""

    error_code = "ASSET_FETCH_FAILED"
    status_code = 502


class RenderEngineError(ImageGenerationError):
    """The layout or raster engine reported an internal error."""

    error_code = "RENDER_ENGINE_ERROR"
    status_code = 500
