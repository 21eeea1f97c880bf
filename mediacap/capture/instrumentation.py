"""Page instrumentation message contract.

The capture worker injects the rendered INSTRUMENTATION_TEMPLATE before
navigation. The script wraps fetch and XMLHttpRequest and rescans the DOM
on mutation, reporting what it sees through console messages of the form
``CAPTURE::<json>``. This module owns both sides of that contract: the
script sources and the parser that turns console text back into raw
observations.

Payload shapes (version 1)::

    {"v": 1, "url": "...", "ct": "...", "note": "fetch" | "xhr"}
    {"v": 1, "type": "dom", "items": ["...", ...]}
    {"v": 1, "type": "json-preview", "url": "...", "preview": "..."}
"""

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..models.media import ConsoleCapture, DomBatch, JsonBodyScan, RawObservation

logger = logging.getLogger(__name__)

CAPTURE_PREFIX = "CAPTURE::"
CONTRACT_VERSION = 1

INSTRUMENTATION_TEMPLATE = r"""
(() => {
  if (window.__mediacapInstalled) return;
  window.__mediacapInstalled = true;
  const PREFIX = "%(prefix)s";
  const VERSION = %(version)d;
  const PREVIEW_LIMIT = %(preview_limit)d;
  const EXT_RE = /\.(mp4|webm|m3u8|mkv|mp3|aac|ogg|opus|wav|flac|m4a|jpe?g|png|gif|bmp|webp)(\?|#|$)/i;
  const send = (o) => { try { o.v = VERSION; console.log(PREFIX + JSON.stringify(o)); } catch (e) {} };
  const isMedia = (ct, u) => /video|audio|image|mpegurl/i.test(ct || "") || EXT_RE.test(u || "");

  try {
    const origFetch = window.fetch.bind(window);
    window.fetch = (...args) => {
      const p = origFetch(...args);
      p.then((r) => {
        try {
          const ct = (r.headers && r.headers.get && r.headers.get("content-type")) || "";
          if (isMedia(ct, r.url)) send({ url: r.url, ct: ct, note: "fetch" });
        } catch (e) {}
      }).catch(() => {});
      return p;
    };
  } catch (e) {}

  try {
    const origOpen = XMLHttpRequest.prototype.open;
    XMLHttpRequest.prototype.open = function (method, url) {
      this.__mediacapUrl = url;
      return origOpen.apply(this, arguments);
    };
    const origSend = XMLHttpRequest.prototype.send;
    XMLHttpRequest.prototype.send = function () {
      this.addEventListener("load", function () {
        try {
          const ct = this.getResponseHeader("content-type") || "";
          const u = this.responseURL || this.__mediacapUrl || "";
          if (isMedia(ct, u)) send({ url: u, ct: ct, note: "xhr" });
          if (ct.includes("application/json") && typeof this.responseText === "string") {
            send({ type: "json-preview", url: u, preview: this.responseText.slice(0, PREVIEW_LIMIT) });
          }
        } catch (e) {}
      });
      return origSend.apply(this, arguments);
    };
  } catch (e) {}

  try {
    const collect = () => {
      const out = new Set();
      document.querySelectorAll("video, audio, img, source").forEach((el) => {
        if (el.src) out.add(el.src);
        if (el.currentSrc) out.add(el.currentSrc);
        const attr = el.getAttribute && el.getAttribute("src");
        if (attr) out.add(attr);
        el.querySelectorAll && el.querySelectorAll("source").forEach((s) => s.src && out.add(s.src));
      });
      if (out.size) send({ type: "dom", items: Array.from(out) });
    };
    let pending = null;
    const schedule = () => {
      if (pending) return;
      pending = setTimeout(() => { pending = null; collect(); }, 250);
    };
    document.addEventListener("DOMContentLoaded", collect);
    new MutationObserver(schedule).observe(document, { childList: true, subtree: true });
  } catch (e) {}
})();
"""

DOM_SCAN_SCRIPT = r"""
() => {
  const out = new Set();
  document.querySelectorAll("video, audio, img, source").forEach((el) => {
    if (el.currentSrc) out.add(el.currentSrc);
    if (el.src) out.add(el.src);
    const attr = el.getAttribute && el.getAttribute("src");
    if (attr) out.add(attr);
    el.querySelectorAll && el.querySelectorAll("source").forEach((s) => s.src && out.add(s.src));
  });
  return Array.from(out);
}
"""


def build_instrumentation_script(preview_limit: int = 8000) -> str:
    """Render the injected script for the current contract version."""
    return INSTRUMENTATION_TEMPLATE % {
        "prefix": CAPTURE_PREFIX,
        "version": CONTRACT_VERSION,
        "preview_limit": preview_limit,
    }


def payload_to_observation(payload: Dict[str, Any]) -> Optional[RawObservation]:
    """Map a decoded instrumentation payload to a raw observation.

    Args:
        payload: Decoded JSON payload

    Returns:
        The matching observation, or None for unknown or malformed payloads
    """
    if not isinstance(payload, dict):
        return None

    version = payload.get("v", CONTRACT_VERSION)
    if version != CONTRACT_VERSION:
        logger.debug(f"Ignoring instrumentation payload with version {version!r}")
        return None

    kind = payload.get("type")
    try:
        if kind == "dom":
            return DomBatch(items=[i for i in payload.get("items") or [] if isinstance(i, str)])
        if kind == "json-preview":
            return JsonBodyScan(preview_text=payload.get("preview") or "", url=payload.get("url"))
        if payload.get("url"):
            return ConsoleCapture(
                url=payload["url"],
                content_type=payload.get("ct") or payload.get("contentType"),
                note=payload.get("note") or payload.get("source"),
            )
    except (ValidationError, TypeError) as e:
        logger.debug(f"Malformed instrumentation payload: {e}")
    return None


def parse_console_text(text: Optional[str]) -> Optional[RawObservation]:
    """Parse one console message emitted by the instrumentation script.

    Args:
        text: Console message text

    Returns:
        Raw observation, or None if the message is not a capture message or
        cannot be decoded
    """
    if not text or not text.startswith(CAPTURE_PREFIX):
        return None

    try:
        payload = json.loads(text[len(CAPTURE_PREFIX):])
    except ValueError as e:
        logger.debug(f"Undecodable capture message: {e}")
        return None

    return payload_to_observation(payload)
