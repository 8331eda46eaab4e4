"""Link-back QR codes pointing a printed page at its live equivalent."""

from __future__ import annotations

import asyncio
import base64
import io
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePosixPath

import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q

from .config import QRConfig
from .discovery import Document
from .engine import RenderSession

LOGGER = logging.getLogger(__name__)

PATH_PLACEHOLDER = "{path}"

_ERROR_CORRECTION = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

INJECT_QR = """
({dataUrl, url, corner, size, margin, showLink}) => {
  document.querySelectorAll('a.pdf-qr-link').forEach(element => element.remove());
  const [vertical, horizontal] = corner.split('-');
  const link = document.createElement('a');
  link.className = 'pdf-qr-link';
  link.href = url;
  link.style.position = 'absolute';
  link.style[vertical] = margin + 'px';
  link.style[horizontal] = margin + 'px';
  link.style.width = size + 'px';
  const image = document.createElement('img');
  image.className = 'pdf-qr-code';
  image.src = dataUrl;
  image.alt = 'QR code linking to ' + url;
  image.width = size;
  image.height = size;
  link.appendChild(image);
  if (showLink) {
    const text = document.createElement('span');
    text.className = 'pdf-qr-url';
    text.textContent = url;
    link.appendChild(text);
  }
  document.body.appendChild(link);
  return true;
}
"""

Encoder = Callable[[str, QRConfig], bytes]


def page_path(relative_path: PurePosixPath) -> str:
    """Web path of a built page: no ``.html`` suffix and no trailing ``index``."""

    parts = list(relative_path.with_suffix("").parts)
    if parts and parts[-1] == "index":
        parts.pop()
        return "/".join(parts) + "/" if parts else ""
    return "/".join(parts)


def build_target_url(base_url: str, relative_path: PurePosixPath) -> str:
    path = page_path(relative_path)
    if PATH_PLACEHOLDER in base_url:
        return base_url.replace(PATH_PLACEHOLDER, path)
    return f"{base_url.rstrip('/')}/{path}"


def render_qr_png(data: str, qr: QRConfig) -> bytes:
    code = qrcode.QRCode(error_correction=_ERROR_CORRECTION[qr.error_correction], box_size=10, border=2)
    code.add_data(data)
    code.make(fit=True)
    image = code.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def png_data_url(payload: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(payload).decode("ascii")


@dataclass(frozen=True, slots=True)
class AnnotationOutcome:
    annotated: bool
    url: str | None = None
    reason: str | None = None


class QRAnnotator:
    def __init__(self, *, encoder: Encoder = render_qr_png) -> None:
        self._encoder = encoder

    def target_url(self, document: Document, qr: QRConfig) -> str:
        return build_target_url(qr.base_url, document.relative_path)

    async def annotate(
        self,
        session: RenderSession,
        document: Document,
        qr: QRConfig,
        *,
        timeout_s: float | None = None,
    ) -> AnnotationOutcome:
        """Inject the QR link. Never raises; failures come back as ``reason``."""

        if not qr.enabled:
            return AnnotationOutcome(annotated=False)
        url = self.target_url(document, qr)
        try:
            data_url = png_data_url(self._encoder(url, qr))
            inject = session.evaluate(
                INJECT_QR,
                {
                    "dataUrl": data_url,
                    "url": url,
                    "corner": qr.position.corner,
                    "size": qr.position.size,
                    "margin": qr.position.margin,
                    "showLink": qr.show_link,
                },
            )
            await asyncio.wait_for(inject, timeout=timeout_s)
        except asyncio.TimeoutError:
            reason = f"injection did not finish within {timeout_s or 0.0:.1f}s"
            LOGGER.warning("Failed to inject QR code for %s: %s", document.name, reason)
            return AnnotationOutcome(annotated=False, url=url, reason=reason)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to inject QR code for %s: %s", document.name, exc)
            return AnnotationOutcome(annotated=False, url=url, reason=str(exc) or type(exc).__name__)
        LOGGER.debug("QR code for %s links to %s", document.name, url)
        return AnnotationOutcome(annotated=True, url=url)


__all__ = ["AnnotationOutcome", "QRAnnotator", "build_target_url", "page_path", "render_qr_png"]
