"""
Response security headers.

The browser client loads the Firebase Auth SDK and Google profile
pictures, so the Content-Security-Policy allows exactly those origins.
"""

CSP_SOURCES = {
    "default-src": ["'self'"],
    "script-src": ["'self'", "https://apis.google.com", "https://www.gstatic.com"],
    "style-src": ["'self'", "'unsafe-inline'", "https://fonts.googleapis.com"],
    "font-src": ["'self'", "data:", "https://fonts.gstatic.com"],
    "img-src": ["'self'", "data:", "blob:", "https://lh3.googleusercontent.com"],
    "connect-src": [
        "'self'",
        "https://identitytoolkit.googleapis.com",
        "https://securetoken.googleapis.com",
    ],
    "frame-src": ["https://accounts.google.com"],
    "frame-ancestors": ["'self'"],
    "base-uri": ["'self'"],
    "form-action": ["'self'"],
}


def build_csp(firebase_project_id=None):
    sources = {name: list(values) for name, values in CSP_SOURCES.items()}
    if firebase_project_id:
        # Firebase sign-in popup is served from the project's auth domain
        sources["frame-src"].append(f"https://{firebase_project_id}.firebaseapp.com")
    return "; ".join(f"{name} {' '.join(values)}" for name, values in sources.items())


def init_security_headers(app):
    """Register the after_request hook that adds the headers."""
    headers = {
        "Content-Security-Policy": build_csp(app.config.get("FIREBASE_PROJECT_ID")),
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "SAMEORIGIN",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    }

    @app.after_request
    def _add_security_headers(response):
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        response.headers.pop("Server", None)
        return response
