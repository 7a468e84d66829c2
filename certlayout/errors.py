from __future__ import annotations


class CertLayoutError(RuntimeError):
    """Base class for errors raised by the layout engine."""


class LayoutConfigError(CertLayoutError, ValueError):
    """Raised when a layout payload cannot be parsed in strict mode."""


class LayerRenderError(CertLayoutError):
    """Raised when a single layer cannot be drawn.

    Carries the offending ``layer_id`` so a batch issuer can retry or report
    the one certificate instead of abandoning the whole run.
    """

    def __init__(self, layer_id: str, message: str, *, cause: BaseException | None = None):
        super().__init__(f"[layer={layer_id}] {message}")
        self.layer_id = layer_id
        self.cause = cause
