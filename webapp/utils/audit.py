import json
import logging

audit_logger = logging.getLogger("audit")

def write_log(*, user_id, action, resource, status="SUCCESS", ip=None, meta=None):
    level = logging.INFO if status == "SUCCESS" else logging.WARNING
    audit_logger.log(
        level,
        "%s %s %s user=%s ip=%s meta=%s",
        action, resource, status, user_id, ip, json.dumps(meta or {}, default=str),
    )
