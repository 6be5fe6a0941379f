"""
Automation fingerprint suppression for chromium.

``navigator.webdriver`` is handled by the ``AutomationControlled`` launch
flag. Patching it from JS re-adds the property and is itself detectable.
"""

from __future__ import annotations

from typing import Any, Dict, List

from chainprobe.config.config import ClientIdentityConfig

STEALTH_ARGS: List[str] = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--no-first-run",
    "--no-default-browser-check",
    "--window-position=0,0",
]

STEALTH_JS = """
Object.defineProperty(navigator, 'plugins', {
    get: () => {
        const plugins = [
            { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format', length: 1 },
            { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '', length: 1 },
            { name: 'Native Client', filename: 'internal-nacl-plugin', description: '', length: 2 },
        ];
        plugins.item = (i) => plugins[i] || null;
        plugins.namedItem = (n) => plugins.find(p => p.name === n) || null;
        plugins.refresh = () => {};
        return plugins;
    },
    configurable: true
});

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
    configurable: true
});

if (!window.chrome) {
    window.chrome = { runtime: {}, loadTimes: () => ({}), csi: () => ({}), app: { isInstalled: false } };
}

const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
if (originalQuery) {
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : originalQuery.call(window.navigator.permissions, parameters)
    );
}

if (typeof WebGLRenderingContext !== 'undefined') {
    const getParameter = WebGLRenderingContext.prototype.getParameter;
    WebGLRenderingContext.prototype.getParameter = function (parameter) {
        if (parameter === 37445) return 'Intel Inc.';
        if (parameter === 37446) return 'Intel Iris OpenGL Engine';
        return getParameter.call(this, parameter);
    };
}
"""


def launch_args(stealth: bool) -> List[str]:
    return list(STEALTH_ARGS) if stealth else []


def context_options(identity: ClientIdentityConfig, user_agent: str) -> Dict[str, Any]:
    """Keyword arguments for ``browser.new_context``."""
    return {
        "user_agent": user_agent,
        "viewport": {"width": identity.viewport_width, "height": identity.viewport_height},
        "locale": identity.locale,
        "timezone_id": identity.timezone_id,
        "extra_http_headers": dict(identity.extra_http_headers),
        "accept_downloads": True,
    }
