from io import BytesIO
from typing import Optional

import qrcode

from parkpass.config.settings_env import settings


def render_qr_png(payload: str, box_size: Optional[int] = None, border: Optional[int] = None) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        box_size=box_size or settings.QR_BOX_SIZE,
        border=settings.QR_BORDER if border is None else border,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
