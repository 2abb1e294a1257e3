"""
QR encoder for procedure records.

Builds the versioned envelope for one procedure or a collection, serializes it
to compact JSON and renders an error-correcting QR code with qrcode + Pillow.

Failure policy
----------------------------------------
Encoding fails closed: when serialization or rendering goes wrong, the encoder
logs the problem and returns a QR image that reads "Error generating QR code"
(low error correction) instead of raising. Callers showing the image always
get something displayable. The only condition reported to the caller is an
empty collection (EmptyInputError), which is a usage error rather than a
rendering failure.
"""

from __future__ import annotations

import abc
import datetime
import json
import logging
import typing
from dataclasses import dataclass

import qrcode
import qrcode.constants
from PIL import Image

from .envelope import APP_NAME, build_collection_envelope, build_single_envelope
from .procedure import Procedure

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Error generating QR code"

_ERROR_CORRECTION_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


class EncodingError(Exception):
    """Base class for encoder errors."""


class EmptyInputError(EncodingError, ValueError):
    """A collection QR code was requested for zero procedures."""


class RenderingError(EncodingError):
    """The QR symbol or its image could not be produced."""


@dataclass(frozen=True)
class RenderOptions:
    """
    Rendering parameters for one QR image.

    Attributes:
        error_correction: One of 'L', 'M', 'Q', 'H'.
        width: Final edge length of the square image in pixels.
        scale: Pixels per module before the final resize.
        margin: Quiet zone in modules.
        dark: Module colour.
        light: Background colour.
    """

    error_correction: str = "H"
    width: int = 300
    scale: int = 4
    margin: int = 1
    dark: str = "#000000"
    light: str = "#ffffff"

    def __post_init__(self) -> None:
        if self.error_correction not in _ERROR_CORRECTION_LEVELS:
            raise ValueError(f"Invalid error correction level: {self.error_correction!r}")
        for attr in ("width", "scale"):
            val = getattr(self, attr)
            if not isinstance(val, int) or val <= 0:
                raise ValueError(f"{attr} must be a positive integer, got {val!r}")
        if not isinstance(self.margin, int) or self.margin < 0:
            raise ValueError(f"margin must be a non-negative integer, got {self.margin!r}")


SINGLE_RENDER = RenderOptions(error_correction="H", width=300, margin=1)
# collections carry more data: bigger image, finer rasterization
COLLECTION_RENDER = RenderOptions(error_correction="H", width=400, scale=4, margin=1)
FALLBACK_RENDER = RenderOptions(error_correction="L", width=300, margin=1)


def serialize_envelope(envelope: typing.Mapping[str, typing.Any]) -> str:
    """Compact JSON, no padding whitespace, non-ASCII kept as-is."""
    return json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))


def render_qr(text: str, options: RenderOptions) -> Image.Image:
    """
    Render `text` as a square QR image of options.width pixels.
    Raises RenderingError on any failure (e.g. data too large for a QR code).
    """
    try:
        qr = qrcode.QRCode(
            version=None,
            error_correction=_ERROR_CORRECTION_LEVELS[options.error_correction],
            box_size=options.scale,
            border=options.margin,
        )
        qr.add_data(text)
        qr.make(fit=True)
        image = qr.make_image(fill_color=options.dark, back_color=options.light).convert("RGB")
        return image.resize((options.width, options.width), Image.NEAREST)
    except Exception as e:
        raise RenderingError(f"Could not render QR code: {e}") from e


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ProcedureEncoder(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def encode_single(self, procedure: Procedure) -> Image.Image:
        raise NotImplementedError

    @abc.abstractmethod
    def encode_collection(self, procedures: typing.Iterable[Procedure]) -> Image.Image:
        raise NotImplementedError


class QrProcedureEncoder(ProcedureEncoder):
    def __init__(
            self,
            app_name: str = APP_NAME,
            clock: typing.Callable[[], datetime.datetime] = _utc_now,
            single_options: RenderOptions = SINGLE_RENDER,
            collection_options: RenderOptions = COLLECTION_RENDER,
            fallback_options: RenderOptions = FALLBACK_RENDER,
    ):
        """
        - app_name : written to the appName field of collection payloads
        - clock    : source of the generatedAt timestamp
        """
        self.app_name = app_name
        self._clock = clock
        self.single_options = single_options
        self.collection_options = collection_options
        self.fallback_options = fallback_options

    def single_payload(self, procedure: Procedure) -> str:
        """Serialized single-procedure envelope, dates in DD.MM.YYYY form."""
        return serialize_envelope(build_single_envelope(procedure.with_wire_dates()))

    def collection_payload(self, procedures: typing.Iterable[Procedure]) -> str:
        """
        Serialized multi-procedure envelope.
        Raises EmptyInputError if `procedures` is empty.
        """
        procedures = list(procedures)
        if not procedures:
            raise EmptyInputError("No procedures available to generate QR code")
        normalized = [procedure.with_wire_dates() for procedure in procedures]
        return serialize_envelope(build_collection_envelope(normalized, self._clock(), self.app_name))

    def encode_single(self, procedure: Procedure) -> Image.Image:
        try:
            payload = self.single_payload(procedure)
            return render_qr(payload, self.single_options)
        except Exception:
            logger.exception("Error generating QR code for a single procedure")
            return self._fallback_image()

    def encode_collection(self, procedures: typing.Iterable[Procedure]) -> Image.Image:
        """
        Render all `procedures` into one QR code.
        Raises EmptyInputError for an empty sequence; every other failure
        yields the fallback image.
        """
        procedures = list(procedures)
        if not procedures:
            raise EmptyInputError("No procedures available to generate QR code")
        try:
            payload = self.collection_payload(procedures)
            logger.debug(f"Collection payload for {len(procedures)} procedures is {len(payload)} characters")
            return render_qr(payload, self.collection_options)
        except Exception:
            logger.exception(f"Error generating QR code for {len(procedures)} procedures")
            return self._fallback_image()

    def _fallback_image(self) -> Image.Image:
        # if this fails too, RenderingError reaches the caller
        return render_qr(FALLBACK_MESSAGE, self.fallback_options)


_default_encoder = QrProcedureEncoder()


def encode_single(procedure: Procedure) -> Image.Image:
    """Render one procedure with the default encoder."""
    return _default_encoder.encode_single(procedure)


def encode_collection(procedures: typing.Iterable[Procedure]) -> Image.Image:
    """Render a non-empty list of procedures with the default encoder."""
    return _default_encoder.encode_collection(procedures)
