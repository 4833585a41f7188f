"""Package-wide constants.

Hook names, column lengths and defaults shared by the listeners,
the model and the settings.
"""

# Hook names, one per lifecycle point
CREATE_HOOK_NAME = "audit:create"
UPDATE_HOOK_NAME = "audit:update"
DELETE_HOOK_NAME = "audit:delete"

# SQLAlchemy mapper events the hooks attach to
AFTER_INSERT_EVENT = "after_insert"
AFTER_UPDATE_EVENT = "after_update"
AFTER_DELETE_EVENT = "after_delete"

# Session event that sees ORM-enabled INSERT, UPDATE and DELETE statements
DO_ORM_EXECUTE_EVENT = "do_orm_execute"

# Audit table
DEFAULT_AUDIT_TABLE_NAME = "audit_logs"
MAX_TABLE_NAME_LENGTH = 255
MAX_ACTION_LENGTH = 16

# Snapshot encoding
SNAPSHOT_ENCODING = "utf-8"
SNAPSHOT_SEPARATORS = (",", ":")
