"""
Image transcoding.

`transcode` is a pure function: bytes + EncodingSpec in, encoded bytes out.
It never touches the filesystem or the network so it can be tested and
reused independently of the pipeline providers.
"""

from __future__ import annotations

from io import BytesIO
import logging

from PIL import Image, ImageOps, features

from .errors import DecodeError, UnsupportedFormatError
from .models import EncodingSpec, OutputFormat, TransformResult
from .naming import NamingPolicy

logger = logging.getLogger(__name__)

_FEATURE_CHECKS = {
    OutputFormat.WEBP: "webp",
}


def is_supported(output_format: OutputFormat) -> bool:
    """Return True when the installed Pillow build can encode the format."""
    check = _FEATURE_CHECKS.get(output_format)
    if check is not None and not features.check(check):
        return False
    Image.init()
    return output_format.pil_format in Image.SAVE


def _decode(raw: bytes) -> Image.Image:
    if not raw:
        raise DecodeError("Empty image data")
    try:
        with Image.open(BytesIO(raw)) as probe:
            probe.verify()
        # verify() leaves the image unusable, so reopen for real decoding.
        image = Image.open(BytesIO(raw))
        image.load()
    except Exception as exc:  # noqa: BLE001
        raise DecodeError(f"Invalid image data: {exc}") from exc
    return image


def _flatten_alpha(image: Image.Image) -> Image.Image:
    """Composite any transparency onto white; JPEG has no alpha channel."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def _png_compress_level(quality: int) -> int:
    return round((100 - quality) / 100 * 9)


def transcode(raw: bytes, spec: EncodingSpec) -> bytes:
    """
    Decode `raw` and re-encode it according to `spec`.

    Raises:
        UnsupportedFormatError: when no encoder exists for `spec.format`.
        DecodeError: when `raw` is not a recognised raster image.
    """
    if not is_supported(spec.format):
        raise UnsupportedFormatError(f"No encoder available for {spec.format.value}")

    image = _decode(raw)
    try:
        image = ImageOps.exif_transpose(image)
    except Exception as exc:  # noqa: BLE001
        logger.debug("transform: ignoring bad EXIF orientation: %s", exc)

    if spec.format is OutputFormat.JPEG:
        image = _flatten_alpha(image)
        params = {"quality": spec.quality, "optimize": True}
    elif spec.format is OutputFormat.WEBP:
        if image.mode not in ("RGB", "RGBA"):
            has_alpha = "A" in image.getbands() or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")
        params = {"quality": spec.quality}
    else:
        if image.mode == "CMYK":
            image = image.convert("RGB")
        params = {"compress_level": _png_compress_level(spec.quality)}

    buf = BytesIO()
    try:
        image.save(buf, format=spec.format.pil_format, **params)
    except (OSError, ValueError) as exc:
        raise DecodeError(f"Could not encode image as {spec.format.value}: {exc}") from exc
    finally:
        image.close()
    return buf.getvalue()


def transform(source_name: str, raw: bytes, spec: EncodingSpec, policy: NamingPolicy) -> TransformResult:
    """Transcode and attach the derived output filename."""
    data = transcode(raw, spec)
    filename = policy.derive(source_name, spec.format)
    logger.debug("transform: %s -> %s (%d -> %d bytes)", source_name, filename, len(raw), len(data))
    return TransformResult(data=data, filename=filename, content_type=spec.format.content_type)
