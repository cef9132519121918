"""The single classification screen."""

from __future__ import annotations

import html
import json
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from snapclassify.api.routes import FAILURE_MESSAGE

if TYPE_CHECKING:
    from snapclassify.config import Settings

router = APIRouter()

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>SnapClassify</title>
<style>
  body {{ display: flex; flex-direction: column; align-items: center; padding: 20px; font-family: sans-serif; }}
  #url {{ width: 100%; max-width: 600px; height: 40px; padding: 0 10px; margin-bottom: 10px; border: 1px solid gray; }}
  #preview {{ width: 200px; height: 200px; margin-top: 20px; object-fit: contain; }}
  #result {{ white-space: pre; }}
</style>
</head>
<body>
<input id="url" type="text" placeholder="Enter image URL" value="{default_url}">
<button id="classify">Load and Classify Image</button>
<img id="preview" src="{default_url}" alt="">
<p id="loading">Loading model...</p>
<p id="result"></p>
<script>
  const urlInput = document.getElementById("url");
  const preview = document.getElementById("preview");
  const loading = document.getElementById("loading");
  const result = document.getElementById("result");
  const FAILURE_MESSAGE = {failure_message};

  urlInput.addEventListener("input", () => {{
    preview.hidden = !urlInput.value;
    preview.src = urlInput.value;
  }});

  async function pollReady() {{
    try {{
      const response = await fetch("{api_prefix}/health");
      const health = await response.json();
      if (health.state === "ready") {{
        loading.hidden = true;
        return;
      }}
    }} catch (err) {{
      console.error("Health check failed:", err);
    }}
    setTimeout(pollReady, 1000);
  }}

  document.getElementById("classify").addEventListener("click", async () => {{
    try {{
      const response = await fetch("{api_prefix}/classify", {{
        method: "POST",
        headers: {{ "Content-Type": "application/json" }},
        body: JSON.stringify({{ url: urlInput.value }}),
      }});
      const body = await response.json();
      if (response.ok) {{
        result.textContent = body.text;
      }} else {{
        alert(typeof body.detail === "string" ? body.detail : FAILURE_MESSAGE);
      }}
    }} catch (err) {{
      console.error("Error loading or processing image:", err);
      alert(FAILURE_MESSAGE);
    }}
  }});

  pollReady();
</script>
</body>
</html>
"""


def render_page(default_url: str, api_prefix: str = "/api/v1") -> str:
    """Render the screen with the URL field pre-populated."""
    return _PAGE.format(
        default_url=html.escape(default_url, quote=True),
        api_prefix=api_prefix,
        failure_message=json.dumps(FAILURE_MESSAGE),
    )


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(request: Request) -> HTMLResponse:
    settings: Settings = request.app.state.settings
    return HTMLResponse(render_page(settings.default_image_url))
