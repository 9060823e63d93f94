"""Browser page showing the live frame, the top label and the camera toggle."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter()

# The page polls the state and frame endpoints; an API key, if configured,
# is taken from the page URL (/?api_key=...) and forwarded.
_PAGE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Image Classification</title>
  <style>
    body { font-family: sans-serif; display: flex; flex-direction: column; align-items: center; }
    #frame { height: 300px; max-width: 100%; object-fit: contain; background: gray; }
    #label { font-weight: bold; padding: 1em; }
    button { padding: 0.8em 1.2em; background: green; color: white; border: 0; border-radius: 8px; }
  </style>
</head>
<body>
  <h1>Image Classification</h1>
  <img id="frame" alt="">
  <div id="label">Waiting for image...</div>
  <button id="toggle">Rotate Camera</button>
  <script>
    const key = new URLSearchParams(location.search).get("api_key");
    const withKey = (path) => key ? `${path}?api_key=${encodeURIComponent(key)}` : path;
    let lastPublished = null;

    async function refresh() {
      try {
        const response = await fetch(withKey("/api/v1/state"));
        if (response.ok) {
          const state = await response.json();
          document.getElementById("label").textContent = state.display_text;
          if (state.frame_available && state.updated_at !== lastPublished) {
            lastPublished = state.updated_at;
            const src = withKey("/api/v1/frame");
            document.getElementById("frame").src = src + (src.includes("?") ? "&" : "?") + "t=" + lastPublished;
          }
        }
      } finally {
        setTimeout(refresh, 200);
      }
    }

    document.getElementById("toggle").addEventListener("click", async () => {
      const response = await fetch(withKey("/api/v1/camera/toggle"), { method: "POST" });
      if (!response.ok) {
        const body = await response.json();
        document.getElementById("label").textContent = body.detail;
      }
    });

    refresh();
  </script>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index() -> HTMLResponse:
    """Serve the live classification page."""
    return HTMLResponse(_PAGE)
