from __future__ import annotations

from dataclasses import dataclass

from .layers import ModeLayers

MODES = ("certificate", "score")


@dataclass(frozen=True)
class CanvasConfig:
    width: float
    height: float


@dataclass(frozen=True)
class TemplateLayoutConfig:
    """Complete layout of one template, as stored in ``layout_config``.

    ``score`` is only present on dual-sided templates. Layer ids may repeat
    across the two modes; each mode keeps its own independent configuration.
    """

    certificate: ModeLayers
    canvas: CanvasConfig
    score: ModeLayers | None = None
    version: str = "1.0"
    last_saved_at: str | None = None

    @property
    def is_dual(self) -> bool:
        return self.score is not None

    def layers_for(self, mode: str) -> ModeLayers:
        if mode not in MODES:
            raise ValueError(f"Unsupported render mode: {mode!r}")
        if mode == "score":
            return self.score or ModeLayers()
        return self.certificate

    @classmethod
    def from_dict(cls, payload: dict, *, strict: bool = False) -> "TemplateLayoutConfig":
        from ..shared.layout_config import parse_layout_config  # avoid import cycle

        return parse_layout_config(payload, strict=strict)

    def to_dict(self) -> dict:
        from ..shared.layout_config import dump_layout_config  # avoid import cycle

        return dump_layout_config(self)
