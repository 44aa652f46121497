import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional, Union
from pythonjsonlogger import jsonlogger
from contextvars import ContextVar

from leaveflow.core.config import settings

# Context variable to store request_id for the current task/request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
# Leave request whose workflow transition is in progress
leave_request_var: ContextVar[Optional[int]] = ContextVar("leave_request_id", default=None)

@contextmanager
def leave_request_context(leave_request_id: Union[int, None]):
    """Tag every log line emitted inside the block with the leave request id."""
    token = leave_request_var.set(leave_request_id)
    try:
        yield
    finally:
        leave_request_var.reset(token)

class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        
        # Inject correlation ID if available
        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id

        leave_request_id = leave_request_var.get()
        if leave_request_id is not None:
            log_record["leave_request_id"] = leave_request_id
        
        if not log_record.get("timestamp"):
            from datetime import datetime, timezone
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        
        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname

def setup_logging():
    logger = logging.getLogger()
    if any(isinstance(h.formatter, CustomJsonFormatter) for h in logger.handlers):
        return
    log_handler = logging.StreamHandler()
    formatter = CustomJsonFormatter("%(timestamp) %(level) %(name) %(message)")
    log_handler.setFormatter(formatter)
    logger.addHandler(log_handler)
    logger.setLevel(settings.log_level.upper())
    
    # Suppress verbose logs from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
