"""
Paper Wallet - Page Rendering

Turns WalletRecords into a single printable HTML page. Each paper wallet
has a public half (alias, address, address QR) and a private half
(descriptor, legend, redacted descriptor QR) separated by a fold line.
"""

import base64
import io
from typing import List, Union

import jinja2
import qrcode
import qrcode.image.svg
from qrcode.exceptions import DataOverflowError

from .errors import QrError
from .wallet_types import WalletRecord

# ═══════════════════════════════════════════════════════════════════════════════
# TEMPLATE
# ═══════════════════════════════════════════════════════════════════════════════

CSS = """
body { font-family: monospace; font-size: 12px; margin: 0; }
.single { display: flex; flex-direction: row; border: 1px dashed #888;
          margin: 8px; page-break-inside: avoid; }
.single > div { flex: 1; padding: 8px; }
.black { flex: 0 0 12px !important; padding: 0 !important; background: #000; }
.break-word { word-break: break-all; }
.bold { font-weight: bold; font-size: 16px; }
.center { text-align: center; }
.pad { padding: 4px 0; }
.qr { width: 200px; height: 200px; image-rendering: pixelated; }
"""

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>Bitcoin Paper Wallet</title>
<style>{{ css|safe }}</style>
</head>
<body>
{% for wallet in wallets %}
<div class="single">
  <div>
    <div class="break-word">
      <span class="bold">{{ wallet.alias }}</span><br>
      {{ wallet.address }}
    </div>
    <div class="center"><img class="qr" src="{{ wallet.public_qr }}"></div>
  </div>
  <div class="black"></div>
  <div>
    <div class="break-word">
      <div class="pad">{{ wallet.descriptor_alias }}</div>
      {% for row in wallet.legend_rows %}<div class="pad">{{ row }}</div>{% endfor %}
    </div>
    <div class="center"><img class="qr" src="{{ wallet.private_qr }}"></div>
  </div>
</div>
{% endfor %}
</body>
</html>
"""

_env = jinja2.Environment(autoescape=True)


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def to_data_url(content: Union[str, bytes], content_type: str) -> str:
    """Base64 `content` into a data url."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def qr_data_url(message: str) -> str:
    """
    QR code of `message` as an SVG data url.

    Raises:
        QrError: message too long for a QR code
    """
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
        image_factory=qrcode.image.svg.SvgPathImage,
    )
    try:
        qr.add_data(message)
        qr.make(fit=True)
    except DataOverflowError as e:
        raise QrError(f"QR overflow for {len(message)} chars: {e}")

    buf = io.BytesIO()
    qr.make_image().save(buf)
    return to_data_url(buf.getvalue(), "image/svg+xml")


def _wallet_context(record: WalletRecord) -> dict:
    context = record.to_dict()
    context["public_qr"] = qr_data_url(record.address_qr)
    context["private_qr"] = qr_data_url(record.descriptor_qr)
    return context


# ═══════════════════════════════════════════════════════════════════════════════
# PAGE
# ═══════════════════════════════════════════════════════════════════════════════

def paper_wallets(records: List[WalletRecord]) -> str:
    """HTML page containing the given paper wallets."""
    wallets = [_wallet_context(record) for record in records]
    css = " ".join(CSS.split())
    return _env.from_string(PAGE_TEMPLATE).render(css=css, wallets=wallets)
