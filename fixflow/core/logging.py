
import logging
import sys
import json
from .settings import settings

# Extra attributes that flow code attaches via `extra=` and that we want in the JSON line
FLOW_FIELDS = ("owner_id", "flow_type", "step", "event")

class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_obj = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "trace_id": getattr(record, "trace_id", None)
        }
        for field in FLOW_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = value
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)

def setup_logging():
    root = logging.getLogger()
    root.setLevel(settings.log_level)

    # Avoid stacking handlers when the app is created more than once (tests, reloads)
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)

    # Silence chatty libraries
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    return root
