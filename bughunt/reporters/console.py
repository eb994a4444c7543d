from colorama import init as colorama_init, Fore, Style
from datetime import datetime
import threading

colorama_init(autoreset=True)


class Log:
    def __init__(self, verbose: int = 1):
        self.verbose = verbose
        self.PAY = Fore.MAGENTA
        # payload requests log from worker threads
        self._lock = threading.Lock()

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {color}[{level}]{Style.RESET_ALL}"

    def _emit(self, line: str):
        with self._lock:
            print(line, flush=True)

    def info(self, msg: str):
        if self.verbose >= 1:
            self._emit(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= 0:
            self._emit(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def error(self, msg: str):
        self._emit(f"{self._fmt('ERROR', Fore.RED)} {msg}")

    def ok(self, msg: str):
        if self.verbose >= 1:
            self._emit(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        if self.verbose >= 1:
            self._emit(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= 2:
            self._emit(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def finding(self, sev: str, vuln: str, param: str, payload: str, evidence: str = ""):
        sev_col = {"high": Fore.RED, "medium": Fore.YELLOW,
                   "low": Fore.GREEN}.get(sev.lower(), Fore.WHITE)
        self._emit(f"{self._fmt(sev.upper(), sev_col)} {vuln} "
                   f"{param} = {Fore.MAGENTA}{payload}{Style.RESET_ALL} "
                   f"{Style.DIM}({evidence}){Style.RESET_ALL}")
