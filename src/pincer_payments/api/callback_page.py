"""HTML returned to the issuer's challenge frame once a challenge completes."""

import html
import json
from urllib.parse import urlencode

from pincer_payments.services.payments import ChallengeCompletion

MESSAGE_TYPE = "3ds_challenge_complete"

_JS_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "'": "\\u0027",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def render_challenge_page(
    completion: ChallengeCompletion,
    allowed_origin: str,
    return_url: str,
) -> str:
    """Render the page that hands the challenge result back to the checkout.

    Inside a frame the result is posted to ``allowed_origin`` only; as a top
    level page it redirects to ``return_url`` with the session id and a coarse
    approved/declined flag.
    """
    message = {
        "type": MESSAGE_TYPE,
        "session": str(completion.session_id),
        "approved": completion.approved,
        "result": completion.result,
    }
    redirect_url = _with_query(
        return_url,
        {
            "session": str(completion.session_id),
            "result": "approved" if completion.approved else "declined",
        },
    )
    return _PAGE_TEMPLATE.format(
        message=_js_literal(message),
        origin=_js_literal(allowed_origin),
        redirect=_js_literal(redirect_url),
        redirect_href=html.escape(redirect_url, quote=True),
    )


def _js_literal(value: object) -> str:
    """Encode a value as a JavaScript literal safe inside a script element."""
    encoded = json.dumps(value, ensure_ascii=False)
    for raw, escaped in _JS_ESCAPES.items():
        encoded = encoded.replace(raw, escaped)
    return encoded


def _with_query(url: str, params: dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="es">
  <head>
    <meta charset="utf-8" />
    <title>Procesando...</title>
  </head>
  <body>
    <p>Procesando resultado del pago...</p>
    <script>
      var message = {message};
      if (window.parent && window.parent !== window) {{
        window.parent.postMessage(message, {origin});
      }} else {{
        window.location.href = {redirect};
      }}
    </script>
    <noscript><a href="{redirect_href}">Continuar</a></noscript>
  </body>
</html>
"""
