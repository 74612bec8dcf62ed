"""Synthetic responses served when the network and the cache both fail."""

from __future__ import annotations

import json

from offlinegate.models.request import ResponseSnapshot

OFFLINE_MARKER_HEADER = "x-served-by"
OFFLINE_MARKER_VALUE = "cache-offline"

QUEUED_MESSAGE = "Request queued for background sync"

_OFFLINE_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Offline</title>
  <style>
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', system-ui, sans-serif;
      display: flex;
      align-items: center;
      justify-content: center;
      min-height: 100vh;
      margin: 0;
      background: #f5f5f5;
      color: #333;
    }
    .offline-container {
      text-align: center;
      padding: 2rem;
      background: white;
      border-radius: 12px;
      box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1);
      max-width: 400px;
    }
    h1 { color: #2E7D32; margin-bottom: 1rem; }
    .retry-btn {
      background: #2E7D32;
      color: white;
      border: none;
      padding: 12px 24px;
      border-radius: 8px;
      cursor: pointer;
      font-size: 16px;
      margin-top: 1rem;
    }
  </style>
</head>
<body>
  <div class="offline-container">
    <h1>You're Offline</h1>
    <p>Please check your internet connection and try again.</p>
    <p>Your data is stored safely and will sync when you're back online.</p>
    <button class="retry-btn" onclick="window.location.reload()">Try Again</button>
  </div>
</body>
</html>
"""

_PLACEHOLDER_SVG = """<svg width="200" height="200" xmlns="http://www.w3.org/2000/svg">
  <rect width="200" height="200" fill="#f0f0f0"/>
  <text x="100" y="100" text-anchor="middle" dy="0.3em" font-family="Arial" font-size="14" fill="#999">Image Unavailable</text>
</svg>
"""


def offline_page() -> ResponseSnapshot:
    """Self-contained document served in place of a failed navigation."""
    return ResponseSnapshot(
        status=200,
        headers={"content-type": "text/html"},
        body=_OFFLINE_PAGE.encode("utf-8"),
    )


def placeholder_image() -> ResponseSnapshot:
    return ResponseSnapshot(
        status=200,
        headers={"content-type": "image/svg+xml"},
        body=_PLACEHOLDER_SVG.encode("utf-8"),
    )


def queued_response() -> ResponseSnapshot:
    """202 returned for a mutating request deferred to background sync."""
    payload = {"success": False, "message": QUEUED_MESSAGE, "offline": True}
    return ResponseSnapshot(
        status=202,
        headers={"content-type": "application/json"},
        body=json.dumps(payload).encode("utf-8"),
    )


def mark_offline(response: ResponseSnapshot) -> ResponseSnapshot:
    """Tag a cached response served while the network is unreachable."""
    return response.with_header(OFFLINE_MARKER_HEADER, OFFLINE_MARKER_VALUE)
