"""
HTML page shown in the OAuth popup after the provider redirect.

It posts ``{type: 'OAUTH_SUCCESS' | 'OAUTH_ERROR', service, error?}`` to the
opener window and closes itself.  If the opener is gone the message is
dropped; the UI can still poll ``/oauth/status/{provider}``.
"""

from __future__ import annotations

import html
import json

from connectors.oauth import CallbackResult
from connectors.registry import ConnectorRegistry


def _script_json(value: dict) -> str:
    # Keep "</script>" and friends out of the inline script
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def opener_message(result: CallbackResult) -> dict:
    if result.ok:
        return {"type": "OAUTH_SUCCESS", "service": result.provider}
    message = {"type": "OAUTH_ERROR", "error": result.message, "reason": result.outcome}
    if result.provider:
        message["service"] = result.provider
    return message


def render_callback_page(result: CallbackResult) -> str:
    registry = ConnectorRegistry()
    service = result.provider or "integration"
    if result.provider and registry.has(result.provider):
        service = registry.get(result.provider).display_name

    if result.ok:
        heading = f"✅ {service} Connected!"
        detail = "This window will close automatically..."
        color = "#00d992"
    else:
        heading = "❌ Connection Failed"
        detail = f"Error: {result.message}"
        color = "#ef4444"

    return f"""<!DOCTYPE html>
<html>
<head>
    <title>{html.escape(heading)}</title>
    <style>
        body {{
            font-family: system-ui, Arial, sans-serif;
            display: flex; align-items: center; justify-content: center;
            height: 100vh; margin: 0;
        }}
        .card {{ text-align: center; padding: 50px; max-width: 420px; }}
        h2 {{ color: {color}; }}
    </style>
</head>
<body>
    <div class="card">
        <h2>{html.escape(heading)}</h2>
        <p>{html.escape(detail)}</p>
    </div>
    <script>
        if (window.opener) {{
            window.opener.postMessage({_script_json(opener_message(result))}, '*');
        }}
        setTimeout(() => window.close(), 1500);
    </script>
</body>
</html>"""
