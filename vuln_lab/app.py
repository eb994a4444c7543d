"""VulnLab: deliberately vulnerable web app the bughunt tools are tested against.

Every endpoint takes its input from the query string, the way the probing
engine delivers payloads. The SQL endpoint runs a real SQLite query and
leaks a MySQL-style error; file reads go through a small fake filesystem so
results do not depend on the host.
"""

import posixpath
import sqlite3

from flask import Flask, make_response, redirect, render_template_string, request

WEB_ROOT = "/srv"

FAKE_FS = {
    "/etc/passwd": (
        "root:x:0:0:root:/root:/bin/bash\n"
        "daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin\n"
        "bin:x:2:2:bin:/bin:/usr/sbin/nologin\n"
        "nobody:x:65534:65534:nobody:/nonexistent:/usr/sbin/nologin\n"
    ),
    "/etc/hosts": "127.0.0.1 localhost\n::1 localhost ip6-localhost\n",
    "/srv/hello.txt": "Hello from VulnLab!\n",
}

SEED = [
    (1, "admin", "admin@vulnlab.local", "admin"),
    (2, "alice", "alice@vulnlab.local", "user"),
    (3, "bob", "bob@vulnlab.local", "user"),
    (4, "secret_flag", "flag{sql1_d3t3ct3d}", "flag"),
]

# ── Shared HTML layout ──────────────────────────────────────────

_LAYOUT = """<!DOCTYPE html>
<html><head><title>VulnLab - {{ title }}</title></head>
<body>
<h1>VulnLab</h1>
<h2>{{ title }}</h2>
{{ content|safe }}
</body></html>
"""


def page(title, content):
    return render_template_string(_LAYOUT, title=title, content=content)


def connect():
    """Fresh in-memory database per request."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, email TEXT, role TEXT)")
    conn.executemany("INSERT INTO users VALUES (?,?,?,?)", SEED)
    return conn


def read_file(name: str):
    """Resolve *name* the way a naive include() would, relative to WEB_ROOT."""
    path = name if name.startswith("/") else posixpath.join(WEB_ROOT, name)
    return FAKE_FS.get(posixpath.normpath(path))


def create_lab() -> Flask:
    app = Flask(__name__)

    @app.route("/")
    def home():
        return page("Home", """
        <ul>
            <li><a href="/xss?q=test">Reflected XSS</a></li>
            <li><a href="/sqli?id=1">SQL Injection</a></li>
            <li><a href="/lfi?file=hello.txt">Local File Inclusion</a></li>
            <li><a href="/redirect?url=/">Open Redirect</a></li>
            <li><a href="/secure">Hardened page</a></li>
        </ul>
        """)

    @app.route("/xss")
    def xss():
        q = request.args.get("q", "test")
        # VULNERABLE: input rendered without escaping
        return page("Reflected XSS", f"<p>Search results for: {q}</p>")

    @app.route("/xss-safe")
    def xss_safe():
        return render_template_string(
            "<p>Search results for: {{ q }}</p>", q=request.args.get("q", "test"))

    @app.route("/sqli")
    def sqli():
        id_val = request.args.get("id", "")
        if not id_val:
            return page("SQL Injection", "<p>Provide a user ID.</p>")

        # VULNERABLE: raw string interpolation in SQL query
        query = f"SELECT * FROM users WHERE id = '{id_val}'"
        conn = connect()
        try:
            rows = conn.execute(query).fetchall()
            result = "".join(f"<p>{r['name']} &lt;{r['email']}&gt;</p>" for r in rows)
            result = result or "<p>No user found.</p>"
        except (sqlite3.Error, sqlite3.Warning):
            # VULNERABLE: leaking database errors
            result = ("<p>You have an error in your SQL syntax; check the manual that "
                      "corresponds to your MySQL server version</p>")
        finally:
            conn.close()
        return page("SQL Injection", result)

    @app.route("/lfi")
    def lfi():
        name = request.args.get("file", "")
        if not name:
            return page("Local File Inclusion", "<p>Provide a file path.</p>")
        # VULNERABLE: path traversal, no sanitization
        content = read_file(name)
        result = f"<pre>{content}</pre>" if content is not None else "<p>File not found.</p>"
        return page("Local File Inclusion", result)

    @app.route("/redirect")
    def open_redirect():
        url = request.args.get("url", "")
        if not url:
            return page("Open Redirect", "<p>Provide a redirect URL.</p>")
        # VULNERABLE: no validation of target URL
        return redirect(url)

    @app.route("/redirect-safe")
    def safe_redirect():
        return redirect("/")

    @app.route("/secure")
    def secure():
        resp = make_response(page("Hardened page", "<p>Nothing to see.</p>"))
        resp.headers["Content-Security-Policy"] = "default-src 'self'"
        resp.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return resp

    return app


app = create_lab()


if __name__ == "__main__":
    print("\n  VulnLab starting on http://127.0.0.1:5001\n")
    app.run(host="127.0.0.1", port=5001, debug=True)
