"""Output file naming policy."""

from __future__ import annotations

from dataclasses import dataclass
import posixpath

from .models import OutputFormat


@dataclass(frozen=True)
class NamingPolicy:
    prefix: str = ""
    swap_extension: bool = False

    @classmethod
    def same_format(cls) -> "NamingPolicy":
        """`photo.jpg` -> `compressed_photo.jpg`."""
        return cls(prefix="compressed_", swap_extension=False)

    @classmethod
    def converting(cls) -> "NamingPolicy":
        """`photo.PNG` -> `photo.webp` (for a WEBP target)."""
        return cls(prefix="", swap_extension=True)

    def derive(self, source_name: str, output_format: OutputFormat) -> str:
        base = posixpath.basename(source_name.replace("\\", "/")).strip()
        if not base or base in {".", ".."}:
            raise ValueError(f"Cannot derive an output name from {source_name!r}")
        if self.swap_extension:
            stem, _ = posixpath.splitext(base)
            base = (stem or base) + output_format.extension
        return f"{self.prefix}{base}"
